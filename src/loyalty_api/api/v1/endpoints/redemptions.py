"""Redemption creation and history endpoints."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loyalty_api.api.dependencies.session import require_current_user
from loyalty_api.db.session import get_session, get_session_factory
from loyalty_api.models.user import User
from loyalty_api.schemas.loyalty import RedemptionCreateRequest, RedemptionResponse
from loyalty_api.services.loyalty import (
    InsufficientPointsError,
    LoyaltyStore,
    RecordNotFoundError,
    RedemptionBusyError,
    RedemptionEngine,
    RewardUnavailableError,
)


router = APIRouter(prefix="/redemptions", tags=["redemptions"])


def get_redemption_engine(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> RedemptionEngine:
    return RedemptionEngine(factory)


@router.get("", response_model=list[RedemptionResponse])
async def list_redemptions(
    user: User = Depends(require_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[RedemptionResponse]:
    """Return the caller's redemptions, newest first."""

    redemptions = await LoyaltyStore(db).list_redemptions_for_user(user.id)
    return [RedemptionResponse.model_validate(redemption) for redemption in redemptions]


def _parse_reward_id(payload: Any) -> UUID:
    """Read ``rewardId`` from an arbitrary JSON body; anything but a UUID string is a 400."""

    request = RedemptionCreateRequest.model_validate(payload) if isinstance(payload, dict) else None
    raw_reward_id = request.reward_id if request is not None else None
    if isinstance(raw_reward_id, str):
        raw_reward_id = raw_reward_id.strip()
    if raw_reward_id is None or raw_reward_id == "":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="reward_id is required")
    if not isinstance(raw_reward_id, str):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="reward_id is invalid")
    try:
        return UUID(raw_reward_id)
    except ValueError as error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="reward_id is invalid") from error


@router.post("", response_model=RedemptionResponse, status_code=status.HTTP_201_CREATED)
async def create_redemption(
    payload: Any = Body(None, examples=[{"rewardId": "6f1c2d0e-3b7a-4c59-9a8e-1d2f3a4b5c6d"}]),
    user: User = Depends(require_current_user),
    engine: RedemptionEngine = Depends(get_redemption_engine),
) -> RedemptionResponse:
    """Redeem a reward for the caller."""

    reward_id = _parse_reward_id(payload)

    try:
        redemption = await engine.redeem(user.id, reward_id)
    except RecordNotFoundError as error:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{error.entity.capitalize()} not found",
        ) from error
    except RewardUnavailableError as error:
        raise HTTPException(status_code=422, detail="Reward unavailable") from error
    except InsufficientPointsError as error:
        raise HTTPException(status_code=422, detail="Insufficient points") from error
    except RedemptionBusyError as error:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Another redemption is in progress, retry shortly",
        ) from error

    return RedemptionResponse.model_validate(redemption)
