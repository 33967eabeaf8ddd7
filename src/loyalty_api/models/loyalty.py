"""Reward catalog and redemption history models."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    func,
    inspect,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, validates

from loyalty_api.db.base import Base


def _require_positive_integer(key: str, value: int | None) -> int:
    if value is None:
        raise ValueError(f"{key} is required")
    if isinstance(value, bool) or int(value) != value:
        raise ValueError(f"{key} must be an integer")
    if value <= 0:
        raise ValueError(f"{key} must be greater than 0")
    return int(value)


class Reward(Base):
    """Catalog entry members can spend points on."""

    __tablename__ = "rewards"
    __table_args__ = (
        CheckConstraint("points_cost > 0", name="ck_rewards_points_cost_positive"),
        Index("ix_rewards_available_points_cost", "available", "points_cost"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    points_cost = Column(Integer, nullable=False)
    image_url = Column(String, nullable=True)
    available = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    redemptions = relationship("Redemption", back_populates="reward")

    @validates("name")
    def _validate_name(self, key: str, name: str | None) -> str:
        if not name or not name.strip():
            raise ValueError("name is required")
        return name

    @validates("points_cost")
    def _validate_points_cost(self, key: str, points: int | None) -> int:
        return _require_positive_integer(key, points)


class Redemption(Base):
    """Immutable record of points spent on a reward.

    ``points_spent`` snapshots the reward cost at redemption time, so later catalog
    price changes never rewrite history.
    """

    __tablename__ = "redemptions"
    __table_args__ = (
        CheckConstraint("points_spent > 0", name="ck_redemptions_points_spent_positive"),
        Index("ix_redemptions_user_id_redeemed_at", "user_id", "redeemed_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    reward_id = Column(UUID(as_uuid=True), ForeignKey("rewards.id"), nullable=False, index=True)
    points_spent = Column(Integer, nullable=False)
    redeemed_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="redemptions")
    reward = relationship("Reward", back_populates="redemptions")

    @validates("points_spent")
    def _validate_points_spent(self, key: str, points: int | None) -> int:
        return _require_positive_integer(key, points)


@event.listens_for(Redemption, "before_update")
def _reject_redemption_update(mapper, connection, target: Redemption) -> None:
    state = inspect(target)
    changed = [
        column_attr.key
        for column_attr in state.mapper.column_attrs
        if state.attrs[column_attr.key].history.has_changes()
    ]
    if changed:
        raise ValueError(f"Redemptions are immutable (attempted to change: {', '.join(changed)})")
