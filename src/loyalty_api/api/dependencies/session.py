"""Identity resolution for member-facing endpoints.

The caller identifies itself with an ``X-User-Id`` header. When that header is missing
or does not resolve, a pluggable fallback may choose a user instead; the default
development fallback picks the oldest user so the demo works without a login flow.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_api.core.settings import settings
from loyalty_api.db.session import get_session
from loyalty_api.models.user import User
from loyalty_api.services.loyalty import LoyaltyStore


class FirstUserFallback:
    """Development identity: act as the oldest user."""

    async def __call__(self, db: AsyncSession) -> User | None:
        return await LoyaltyStore(db).first_user()


def get_identity_fallback() -> FirstUserFallback | None:
    if settings.identity_fallback == "first_user":
        return FirstUserFallback()
    return None


def _parse_user_id(raw: str | None) -> UUID | None:
    if not raw:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        logger.debug("Ignoring malformed user header", header=raw)
        return None


async def require_current_user(
    session_user: str | None = Header(None, alias="X-User-Id"),
    db: AsyncSession = Depends(get_session),
    fallback: FirstUserFallback | None = Depends(get_identity_fallback),
) -> User:
    """Resolve the acting user from the request header or the configured fallback."""

    user_id = _parse_user_id(session_user)
    user = await LoyaltyStore(db).get_user(user_id) if user_id else None
    if user is None and fallback is not None:
        user = await fallback(db)

    if user is not None:
        return user

    if not session_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user context",
        )
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="User not found",
    )
