"""In-process per-user locks for databases without row-level locking."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, MutableMapping
from uuid import UUID

from loguru import logger

from .errors import RedemptionBusyError


class UserLockRegistry:
    """Hand out one ``asyncio.Lock`` per user, dropping it once nobody needs it."""

    def __init__(self) -> None:
        self._locks: MutableMapping[UUID, asyncio.Lock] = {}
        self._references: MutableMapping[UUID, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, user_id: UUID) -> bool:
        lock = self._locks.get(user_id)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, user_id: UUID, *, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold the user's lock, raising ``RedemptionBusyError`` after ``timeout`` seconds."""

        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._references[user_id] = self._references.get(user_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Timed out waiting for user lock", user_id=str(user_id), timeout=timeout)
                raise RedemptionBusyError(user_id) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            remaining = self._references[user_id] - 1
            if remaining:
                self._references[user_id] = remaining
            else:
                del self._references[user_id]
                del self._locks[user_id]


_REGISTRY = UserLockRegistry()


def get_user_locks() -> UserLockRegistry:
    return _REGISTRY


__all__ = ["UserLockRegistry", "get_user_locks"]
