"""Domain errors raised by the redemption transaction."""

from __future__ import annotations

from typing import Literal
from uuid import UUID


class RedemptionError(Exception):
    """Base class for expected, caller-recoverable redemption failures."""


class RecordNotFoundError(RedemptionError):
    def __init__(self, entity: Literal["user", "reward"], identifier: UUID | str) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity.capitalize()} not found: {identifier}")


class RewardUnavailableError(RedemptionError):
    def __init__(self, reward_id: UUID) -> None:
        self.reward_id = reward_id
        super().__init__(f"Reward unavailable: {reward_id}")


class InsufficientPointsError(RedemptionError):
    def __init__(self, user_id: UUID, *, balance: int, required: int) -> None:
        self.user_id = user_id
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient points: balance {balance}, required {required}")


class RedemptionBusyError(RedemptionError):
    """The user's balance stayed locked by another redemption past the wait bound."""

    def __init__(self, user_id: UUID) -> None:
        self.user_id = user_id
        super().__init__(f"Another redemption is in progress for user {user_id}")


__all__ = [
    "InsufficientPointsError",
    "RecordNotFoundError",
    "RedemptionBusyError",
    "RedemptionError",
    "RewardUnavailableError",
]
