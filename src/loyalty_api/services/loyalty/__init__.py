"""Loyalty service exports."""

from .errors import (  # noqa: F401
    InsufficientPointsError,
    RecordNotFoundError,
    RedemptionBusyError,
    RedemptionError,
    RewardUnavailableError,
)
from .locks import UserLockRegistry, get_user_locks  # noqa: F401
from .redemptions import RedemptionEngine  # noqa: F401
from .store import LoyaltyStore, clamp_page  # noqa: F401
