"""Persistence operations for users, the reward catalog, and redemption history."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from loyalty_api.core.settings import settings
from loyalty_api.models.loyalty import Redemption, Reward
from loyalty_api.models.user import User

from .errors import RecordNotFoundError


def clamp_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    """Bound catalog paging to ``[1, max]`` rows starting at a non-negative offset."""

    requested = settings.rewards_default_limit if limit is None else limit
    bounded_limit = max(1, min(requested, settings.rewards_max_limit))
    bounded_offset = max(0, offset or 0)
    return bounded_limit, bounded_offset


class LoyaltyStore:
    """Query and mutate loyalty state within the caller's session.

    The store never commits; transaction boundaries belong to the caller.
    """

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def get_user(self, user_id: UUID) -> User | None:
        stmt = select(User).where(User.id == user_id)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def first_user(self) -> User | None:
        """Return the oldest user, used by the development identity fallback."""

        stmt = select(User).order_by(User.created_at.asc(), User.id.asc()).limit(1)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_for_update(self, user_id: UUID) -> User:
        """Fetch a user holding an exclusive row lock until the transaction ends."""

        stmt = (
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        user = result.scalar_one_or_none()
        if user is None:
            raise RecordNotFoundError("user", user_id)
        return user

    async def get_reward(self, reward_id: UUID, *, for_share: bool = False) -> Reward:
        stmt = select(Reward).where(Reward.id == reward_id)
        if for_share:
            stmt = stmt.with_for_update(read=True)
        result = await self._db.execute(stmt)
        reward = result.scalar_one_or_none()
        if reward is None:
            raise RecordNotFoundError("reward", reward_id)
        return reward

    async def update_user_balance(self, user_id: UUID, new_balance: int) -> None:
        if new_balance < 0:
            raise ValueError("Points balance cannot go negative")

        stmt = update(User).where(User.id == user_id).values(points_balance=new_balance)
        result = await self._db.execute(stmt)
        if result.rowcount == 0:
            raise RecordNotFoundError("user", user_id)

    async def insert_redemption(
        self,
        user_id: UUID,
        reward_id: UUID,
        points_spent: int,
        redeemed_at: datetime,
    ) -> Redemption:
        """Append a redemption record; its generated ``id`` is available on return."""

        redemption = Redemption(
            user_id=user_id,
            reward_id=reward_id,
            points_spent=points_spent,
            redeemed_at=redeemed_at,
        )
        self._db.add(redemption)
        await self._db.flush()
        return redemption

    async def list_available_rewards(
        self,
        *,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Reward]:
        """Return available rewards ordered by cost."""

        bounded_limit, bounded_offset = clamp_page(limit, offset)
        stmt = (
            select(Reward)
            .where(Reward.available.is_(True))
            .order_by(Reward.points_cost.asc(), Reward.id.asc())
            .limit(bounded_limit)
            .offset(bounded_offset)
        )
        result = await self._db.execute(stmt)
        rewards = list(result.scalars().all())
        logger.debug("Fetched available rewards", count=len(rewards), limit=bounded_limit, offset=bounded_offset)
        return rewards

    async def list_redemptions_for_user(self, user_id: UUID) -> list[Redemption]:
        """Return a user's redemptions newest first with rewards preloaded."""

        stmt = (
            select(Redemption)
            .options(selectinload(Redemption.reward))
            .where(Redemption.user_id == user_id)
            .order_by(Redemption.redeemed_at.desc(), Redemption.created_at.desc())
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all())


__all__ = ["LoyaltyStore", "clamp_page"]
