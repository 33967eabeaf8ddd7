import asyncio
import datetime as dt
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from loyalty_api.models.loyalty import Redemption, Reward
from loyalty_api.models.user import User
from loyalty_api.observability.loyalty import get_loyalty_store
from loyalty_api.services.loyalty import (
    InsufficientPointsError,
    LoyaltyStore,
    RecordNotFoundError,
    RedemptionBusyError,
    RedemptionEngine,
    RewardUnavailableError,
    UserLockRegistry,
)


async def _seed(session_factory, *, balance: int, cost: int, available: bool = True, email: str = "demo@example.com"):
    async with session_factory() as session:
        user = User(email=email, points_balance=balance)
        reward = Reward(name="Free Coffee", description="Any size", points_cost=cost, available=available)
        session.add_all([user, reward])
        await session.commit()
        return user.id, reward.id


async def _balance(session_factory, user_id) -> int:
    async with session_factory() as session:
        user = await session.get(User, user_id)
        return user.points_balance


async def _redemption_count(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(Redemption.id)))
        return int(result.scalar_one())


def _engine(session_factory, **kwargs) -> RedemptionEngine:
    kwargs.setdefault("user_locks", UserLockRegistry())
    return RedemptionEngine(session_factory, **kwargs)


@pytest.mark.asyncio
async def test_redeem_debits_balance_and_records_redemption(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=500, cost=100)

    redemption = await _engine(session_factory).redeem(user_id, reward_id)

    assert redemption.id is not None
    assert redemption.user_id == user_id
    assert redemption.reward_id == reward_id
    assert redemption.points_spent == 100
    assert redemption.redeemed_at is not None
    assert redemption.reward.name == "Free Coffee"
    assert await _balance(session_factory, user_id) == 400
    assert await _redemption_count(session_factory) == 1

    snapshot = get_loyalty_store().snapshot()
    assert snapshot.redemptions["succeeded"] == 1
    assert snapshot.points_redeemed == 100


@pytest.mark.asyncio
async def test_redeem_allows_spending_entire_balance(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=100, cost=100)

    await _engine(session_factory).redeem(user_id, reward_id)

    assert await _balance(session_factory, user_id) == 0


@pytest.mark.asyncio
async def test_redeem_rejects_insufficient_points_without_side_effects(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=50, cost=100)

    with pytest.raises(InsufficientPointsError) as excinfo:
        await _engine(session_factory).redeem(user_id, reward_id)

    assert excinfo.value.balance == 50
    assert excinfo.value.required == 100
    assert await _balance(session_factory, user_id) == 50
    assert await _redemption_count(session_factory) == 0
    assert get_loyalty_store().snapshot().redemptions["insufficient_points"] == 1


@pytest.mark.asyncio
async def test_redeem_rejects_unavailable_reward(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=500, cost=100, available=False)

    with pytest.raises(RewardUnavailableError):
        await _engine(session_factory).redeem(user_id, reward_id)

    assert await _balance(session_factory, user_id) == 500
    assert await _redemption_count(session_factory) == 0


@pytest.mark.asyncio
async def test_unavailable_is_reported_before_insufficient_points(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=0, cost=100, available=False)

    with pytest.raises(RewardUnavailableError):
        await _engine(session_factory).redeem(user_id, reward_id)


@pytest.mark.asyncio
async def test_redeem_missing_reward_raises_not_found(session_factory) -> None:
    user_id, _ = await _seed(session_factory, balance=500, cost=100)
    missing_reward = uuid4()

    with pytest.raises(RecordNotFoundError) as excinfo:
        await _engine(session_factory).redeem(user_id, missing_reward)

    assert excinfo.value.entity == "reward"
    assert excinfo.value.identifier == missing_reward
    assert await _balance(session_factory, user_id) == 500
    assert await _redemption_count(session_factory) == 0
    assert get_loyalty_store().snapshot().redemptions["not_found"] == 1


@pytest.mark.asyncio
async def test_missing_user_is_checked_before_missing_reward(session_factory) -> None:
    with pytest.raises(RecordNotFoundError) as excinfo:
        await _engine(session_factory).redeem(uuid4(), uuid4())

    assert excinfo.value.entity == "user"


@pytest.mark.asyncio
async def test_concurrent_redemptions_cannot_overdraw_balance(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=100, cost=100)
    engine = _engine(session_factory)

    results = await asyncio.gather(
        engine.redeem(user_id, reward_id),
        engine.redeem(user_id, reward_id),
        return_exceptions=True,
    )

    succeeded = [result for result in results if isinstance(result, Redemption)]
    rejected = [result for result in results if isinstance(result, InsufficientPointsError)]
    assert len(succeeded) == 1
    assert len(rejected) == 1
    assert await _balance(session_factory, user_id) == 0
    assert await _redemption_count(session_factory) == 1


@pytest.mark.asyncio
async def test_concurrent_burst_spends_exactly_what_the_balance_covers(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=250, cost=100)
    engine = _engine(session_factory)

    results = await asyncio.gather(
        *(engine.redeem(user_id, reward_id) for _ in range(5)),
        return_exceptions=True,
    )

    assert sum(isinstance(result, Redemption) for result in results) == 2
    assert sum(isinstance(result, InsufficientPointsError) for result in results) == 3
    assert await _balance(session_factory, user_id) == 50
    assert await _redemption_count(session_factory) == 2


@pytest.mark.asyncio
async def test_points_spent_is_a_snapshot_of_cost_at_redemption(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=500, cost=100)
    await _engine(session_factory).redeem(user_id, reward_id)

    async with session_factory() as session:
        reward = await session.get(Reward, reward_id)
        reward.points_cost = 300
        await session.commit()

    async with session_factory() as session:
        history = await LoyaltyStore(session).list_redemptions_for_user(user_id)

    assert [entry.points_spent for entry in history] == [100]
    assert history[0].reward.points_cost == 300


@pytest.mark.asyncio
async def test_persisted_redemptions_cannot_be_modified(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=500, cost=100)
    redemption = await _engine(session_factory).redeem(user_id, reward_id)

    async with session_factory() as session:
        stored = await session.get(Redemption, redemption.id)
        stored.redeemed_at = dt.datetime(2020, 1, 1, tzinfo=dt.timezone.utc)
        with pytest.raises(ValueError, match="immutable"):
            await session.flush()


@pytest.mark.asyncio
async def test_redeem_uses_supplied_timestamp(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=500, cost=100)
    redeemed_at = dt.datetime(2026, 1, 8, 12, 30, tzinfo=dt.timezone.utc)

    redemption = await _engine(session_factory).redeem(user_id, reward_id, now=redeemed_at)

    assert redemption.redeemed_at == redeemed_at


@pytest.mark.asyncio
async def test_redeem_times_out_while_user_is_locked(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=500, cost=100)
    locks = UserLockRegistry()
    engine = _engine(session_factory, user_locks=locks, lock_timeout_seconds=0.05)

    async with locks.hold(user_id):
        with pytest.raises(RedemptionBusyError):
            await engine.redeem(user_id, reward_id)

    assert await _balance(session_factory, user_id) == 500
    assert await _redemption_count(session_factory) == 0
    assert get_loyalty_store().snapshot().redemptions["busy"] == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_other_users_are_not_blocked_by_a_held_lock(session_factory) -> None:
    locked_user, _ = await _seed(session_factory, balance=500, cost=100, email="locked@example.com")
    free_user, reward_id = await _seed(session_factory, balance=500, cost=100, email="free@example.com")
    locks = UserLockRegistry()
    engine = _engine(session_factory, user_locks=locks, lock_timeout_seconds=0.05)

    async with locks.hold(locked_user):
        redemption = await engine.redeem(free_user, reward_id)
        assert locks.is_locked(locked_user)
        with pytest.raises(RedemptionBusyError):
            await engine.redeem(locked_user, reward_id)

    assert redemption.points_spent == 100
    assert await _balance(session_factory, free_user) == 400
    assert await _balance(session_factory, locked_user) == 500


@pytest.mark.asyncio
async def test_concurrent_redemptions_for_different_users_all_succeed(session_factory) -> None:
    members = [
        await _seed(session_factory, balance=300, cost=100, email=f"member{index}@example.com")
        for index in range(5)
    ]
    locks = UserLockRegistry()
    engine = _engine(session_factory, user_locks=locks)

    results = await asyncio.gather(
        *(engine.redeem(user_id, reward_id) for user_id, reward_id in members for _ in range(2)),
        return_exceptions=True,
    )

    assert all(isinstance(result, Redemption) for result in results)
    for user_id, _ in members:
        assert await _balance(session_factory, user_id) == 100
    assert await _redemption_count(session_factory) == 10
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_history_orders_by_utc_instant_for_offset_timestamps(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=500, cost=100)
    engine = _engine(session_factory)
    plus_five = dt.timezone(dt.timedelta(hours=5))
    # 10:00+05:00 is 05:00 UTC, earlier than 08:00 UTC despite the later wall clock.
    earlier = dt.datetime(2026, 1, 8, 10, 0, tzinfo=plus_five)
    later = dt.datetime(2026, 1, 8, 8, 0, tzinfo=dt.timezone.utc)

    first = await engine.redeem(user_id, reward_id, now=earlier)
    second = await engine.redeem(user_id, reward_id, now=later)

    assert first.redeemed_at == earlier
    assert first.redeemed_at.utcoffset() == dt.timedelta(0)

    async with session_factory() as session:
        history = await LoyaltyStore(session).list_redemptions_for_user(user_id)

    assert [entry.id for entry in history] == [second.id, first.id]


@pytest.mark.asyncio
async def test_naive_timestamps_are_treated_as_utc(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=500, cost=100)

    redemption = await _engine(session_factory).redeem(user_id, reward_id, now=dt.datetime(2026, 1, 8, 12, 0))

    assert redemption.redeemed_at == dt.datetime(2026, 1, 8, 12, 0, tzinfo=dt.timezone.utc)


@pytest.mark.asyncio
async def test_reward_shared_lock_option_still_redeems(session_factory) -> None:
    user_id, reward_id = await _seed(session_factory, balance=500, cost=100)

    redemption = await _engine(session_factory, lock_reward=True).redeem(user_id, reward_id)

    assert redemption.points_spent == 100
    assert await _balance(session_factory, user_id) == 400
