from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RewardResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    points_cost: int = Field(..., alias="pointsCost")
    image_url: str | None = Field(None, alias="imageUrl")
    available: bool


class RedemptionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    points_spent: int = Field(..., alias="pointsSpent")
    redeemed_at: datetime = Field(..., alias="redeemedAt")
    reward: RewardResponse


class RedemptionCreateRequest(BaseModel):
    reward_id: Any = Field(
        None,
        alias="rewardId",
        validation_alias=AliasChoices("rewardId", "reward_id"),
        description="Identifier of the reward to redeem",
    )


class UserResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    email: str
    points_balance: int = Field(..., alias="pointsBalance")
