"""Redemption transaction: verify, debit, and record in one unit of work.

Concurrent redemptions for the same user serialize on the user's row. On databases with
row-level locks that is ``SELECT ... FOR UPDATE``; SQLite has none, so an in-process
per-user lock stands in. Either way the second transaction evaluates the balance only
after the first has committed or rolled back.
"""

from __future__ import annotations

from contextlib import nullcontext
from datetime import datetime, timezone
from typing import AsyncContextManager
from uuid import UUID

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loyalty_api.core.settings import settings
from loyalty_api.models.loyalty import Redemption
from loyalty_api.observability.loyalty import LoyaltyObservabilityStore, get_loyalty_store

from .errors import (
    InsufficientPointsError,
    RecordNotFoundError,
    RedemptionBusyError,
    RedemptionError,
    RewardUnavailableError,
)
from .locks import UserLockRegistry, get_user_locks
from .store import LoyaltyStore


_ROW_LOCK_DIALECTS = frozenset({"postgresql", "mysql", "mariadb", "oracle", "mssql"})
_PG_LOCK_NOT_AVAILABLE = "55P03"
_MYSQL_LOCK_WAIT_TIMEOUT = 1205


def _is_lock_timeout(error: DBAPIError) -> bool:
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == _PG_LOCK_NOT_AVAILABLE:
        return True
    args = getattr(orig, "args", None) or ()
    return bool(args) and args[0] == _MYSQL_LOCK_WAIT_TIMEOUT


def _as_utc(moment: datetime | None) -> datetime:
    # SQLite drops the offset on write, so history ordering relies on every row being UTC.
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _outcome_for(error: RedemptionError) -> str:
    if isinstance(error, RecordNotFoundError):
        return "not_found"
    if isinstance(error, RewardUnavailableError):
        return "reward_unavailable"
    if isinstance(error, InsufficientPointsError):
        return "insufficient_points"
    return "busy"


class RedemptionEngine:
    """Redeem rewards against user point balances."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        lock_timeout_seconds: float | None = None,
        lock_reward: bool | None = None,
        user_locks: UserLockRegistry | None = None,
        observability: LoyaltyObservabilityStore | None = None,
    ) -> None:
        if lock_timeout_seconds is None:
            lock_timeout_seconds = settings.redemption_lock_timeout_seconds
        self._session_factory = session_factory
        self._lock_timeout = lock_timeout_seconds if lock_timeout_seconds > 0 else None
        self._lock_reward = settings.redemption_lock_reward if lock_reward is None else lock_reward
        self._user_locks = user_locks if user_locks is not None else get_user_locks()
        self._observability = observability if observability is not None else get_loyalty_store()

    async def redeem(
        self,
        user_id: UUID,
        reward_id: UUID,
        *,
        now: datetime | None = None,
    ) -> Redemption:
        """Spend the reward's cost from the user's balance and record the redemption.

        Raises ``RecordNotFoundError`` (user, then reward), ``RewardUnavailableError``,
        ``InsufficientPointsError`` or ``RedemptionBusyError``; nothing is written when
        any of them is raised. Storage errors propagate unchanged.
        """

        try:
            redemption = await self._redeem(user_id, reward_id, now=now)
        except RedemptionError as error:
            outcome = _outcome_for(error)
            self._observability.record_redemption(outcome)
            logger.warning(
                "Redemption rejected",
                reason=outcome,
                user_id=str(user_id),
                reward_id=str(reward_id),
                detail=str(error),
            )
            raise

        self._observability.record_redemption("succeeded", points=redemption.points_spent)
        logger.info(
            "Created loyalty redemption",
            redemption_id=str(redemption.id),
            user_id=str(user_id),
            reward_id=str(reward_id),
            points=redemption.points_spent,
        )
        return redemption

    async def _redeem(self, user_id: UUID, reward_id: UUID, *, now: datetime | None) -> Redemption:
        async with self._session_factory() as session:
            dialect = session.get_bind().dialect.name
            async with self._serialize(user_id, dialect):
                try:
                    async with session.begin():
                        return await self._apply(session, dialect, user_id, reward_id, now=now)
                except DBAPIError as error:
                    if _is_lock_timeout(error):
                        logger.warning("Timed out waiting for user row lock", user_id=str(user_id))
                        raise RedemptionBusyError(user_id) from error
                    raise

    def _serialize(self, user_id: UUID, dialect: str) -> AsyncContextManager[None]:
        if dialect in _ROW_LOCK_DIALECTS:
            return nullcontext()
        return self._user_locks.hold(user_id, timeout=self._lock_timeout)

    async def _apply(
        self,
        session: AsyncSession,
        dialect: str,
        user_id: UUID,
        reward_id: UUID,
        *,
        now: datetime | None,
    ) -> Redemption:
        if dialect == "postgresql" and self._lock_timeout is not None:
            timeout_ms = max(1, int(self._lock_timeout * 1000))
            await session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))

        store = LoyaltyStore(session)
        user = await store.get_user_for_update(user_id)
        reward = await store.get_reward(reward_id, for_share=self._lock_reward)

        if not reward.available:
            raise RewardUnavailableError(reward.id)

        cost = int(reward.points_cost)
        balance = int(user.points_balance)
        if balance < cost:
            raise InsufficientPointsError(user.id, balance=balance, required=cost)

        await store.update_user_balance(user.id, balance - cost)
        redemption = await store.insert_redemption(user.id, reward.id, cost, _as_utc(now))
        await session.refresh(redemption, attribute_names=["reward"])
        return redemption


__all__ = ["RedemptionEngine"]
