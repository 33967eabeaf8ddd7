"""Reward catalog endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty_api.db.session import get_session
from loyalty_api.schemas.loyalty import RewardResponse
from loyalty_api.services.loyalty import LoyaltyStore


router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.get("", response_model=list[RewardResponse])
async def list_rewards(
    limit: int | None = Query(None, description="Page size, clamped to [1, 100]"),
    offset: int | None = Query(None, description="Rows to skip, clamped to >= 0"),
    db: AsyncSession = Depends(get_session),
) -> list[RewardResponse]:
    """Return available rewards ordered by ascending points cost."""

    rewards = await LoyaltyStore(db).list_available_rewards(limit=limit, offset=offset)
    return [RewardResponse.model_validate(reward) for reward in rewards]
