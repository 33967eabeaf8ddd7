"""SQLAlchemy models package."""

from .user import User  # noqa: F401
from .loyalty import Redemption, Reward  # noqa: F401
