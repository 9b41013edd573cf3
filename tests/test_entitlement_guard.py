"""
Tests for EntitlementGuard against a real database
"""
import asyncio
from datetime import datetime

import pytest

from crud.package import UserPackageRepository
from database_models import UserPackage
from models.entitlement import UNLIMITED_TRIALS, RejectionReason
from services.entitlement_service import EntitlementGuard

NOW = datetime(2026, 1, 20, 10, 0, 0)


def guard_for(session, now=NOW):
    return EntitlementGuard(session, clock=lambda: now)


@pytest.mark.asyncio
async def test_no_package_is_rejected(test_db, user):
    decision = await guard_for(test_db).authorize(user.id)
    assert decision.allowed is False
    assert decision.reason is RejectionReason.NO_ACTIVE_PACKAGE
    assert decision.user_package is None


@pytest.mark.asyncio
async def test_reserve_spends_credits_until_exhausted(test_db, user, grant_package):
    """
    Test sequential reservations against a 3-credit package.

    This test verifies:
    - Each reservation takes exactly one credit
    - The fourth attempt is rejected with no trials remaining
    - The rejected attempt leaves the counter at 0
    """
    user_package = await grant_package(user, trial_count=3)
    guard = guard_for(test_db)

    for expected in (2, 1, 0):
        decision, reservation = await guard.reserve(user.id)
        assert decision.allowed is True
        assert isinstance(decision.user_package, UserPackage)
        assert reservation.consumed is True
        assert decision.user_package.trials_remaining == expected

    decision, reservation = await guard.reserve(user.id)
    assert decision.allowed is False
    assert decision.reason is RejectionReason.NO_TRIALS_REMAINING
    assert reservation is None

    stored = await UserPackageRepository(test_db).get_by_id(user_package.id)
    assert stored.trials_remaining == 0


@pytest.mark.asyncio
async def test_release_gives_the_credit_back(test_db, user, grant_package):
    user_package = await grant_package(user, trial_count=1)
    guard = guard_for(test_db)

    decision, reservation = await guard.reserve(user.id)
    assert decision.allowed is True
    assert await guard.release(reservation) is True

    stored = await UserPackageRepository(test_db).get_by_id(user_package.id)
    assert stored.trials_remaining == 1
    assert (await guard.authorize(user.id)).allowed is True


@pytest.mark.asyncio
async def test_unlimited_package_is_never_decremented(test_db, user, grant_package):
    user_package = await grant_package(user, trial_count=UNLIMITED_TRIALS)
    guard = guard_for(test_db)

    for _ in range(5):
        decision, reservation = await guard.reserve(user.id)
        assert decision.allowed is True
        assert reservation.consumed is False
    assert await guard.release(reservation) is False

    stored = await UserPackageRepository(test_db).get_by_id(user_package.id)
    assert stored.trials_remaining == UNLIMITED_TRIALS


@pytest.mark.asyncio
async def test_cycle_limit_is_enforced(test_db, user, grant_package):
    await grant_package(user, is_subscription=True, cycle_limit=2)
    guard = guard_for(test_db)

    assert (await guard.reserve(user.id))[0].allowed is True
    assert (await guard.reserve(user.id))[0].allowed is True

    decision, reservation = await guard.reserve(user.id)
    assert decision.allowed is False
    assert decision.reason is RejectionReason.CYCLE_LIMIT_REACHED
    assert decision.user_package.trials_used_in_cycle == 2


@pytest.mark.asyncio
async def test_auto_renewing_subscription_rolls_over_into_new_cycle(test_db, user, grant_package):
    """
    Test that an exhausted cycle resets once the renewal date passes.

    This test verifies:
    - Usage resets to zero at the renewal boundary
    - The renewal date advances by one month and paid coverage follows it
    - A credit released from the old cycle is not restored into the new one
    """
    user_package = await grant_package(user, is_subscription=True, cycle_limit=1)

    decision, old_reservation = await guard_for(test_db).reserve(user.id)
    assert decision.allowed is True

    later = guard_for(test_db, now=datetime(2026, 2, 16, 9, 0))
    decision, reservation = await later.reserve(user.id)
    assert decision.allowed is True
    assert decision.user_package.is_active is True
    assert decision.user_package.renewal_date == datetime(2026, 3, 15, 12, 0)
    assert decision.user_package.paid_through == datetime(2026, 3, 15, 12, 0)
    assert decision.user_package.trials_used_in_cycle == 1

    assert await later.release(old_reservation) is False
    stored = await UserPackageRepository(test_db).get_by_id(user_package.id)
    assert stored.trials_used_in_cycle == 1


@pytest.mark.asyncio
async def test_cancelled_subscription_lapses_after_paid_period(test_db, user, grant_package):
    """
    Test a cancelled subscription across its last paid day.

    This test verifies:
    - It keeps working while paid coverage lasts
    - Past coverage it is rejected as expired and deactivated
    - Afterwards the user has no active package at all
    """
    user_package = await grant_package(user, is_subscription=True, cycle_limit=15)
    user_package.cancelled_at = datetime(2026, 1, 20, 9, 0)
    await test_db.commit()

    assert (await guard_for(test_db, now=datetime(2026, 2, 14, 9, 0)).authorize(user.id)).allowed is True

    decision = await guard_for(test_db, now=datetime(2026, 2, 16, 9, 0)).authorize(user.id)
    assert decision.allowed is False
    assert decision.reason is RejectionReason.SUBSCRIPTION_EXPIRED

    stored = await UserPackageRepository(test_db).get_by_id(user_package.id)
    assert stored.is_active is False

    decision = await guard_for(test_db, now=datetime(2026, 2, 16, 9, 0)).authorize(user.id)
    assert decision.reason is RejectionReason.NO_ACTIVE_PACKAGE


@pytest.mark.asyncio
async def test_settle_applies_the_package_rule(test_db, user, grant_package):
    one_shot = await grant_package(user, trial_count=1)
    guard = guard_for(test_db)

    await guard.settle(one_shot, succeeded=False)
    assert one_shot.trials_remaining == 1
    await guard.settle(one_shot, succeeded=True)
    await guard.settle(one_shot, succeeded=True)
    assert one_shot.trials_remaining == 0


@pytest.mark.asyncio
async def test_concurrent_reservations_never_overspend(session_factory, test_db, user, grant_package):
    """
    Test C parallel reservations against R credits, each on its own session.

    This test verifies:
    - Exactly R reservations succeed
    - The other C-R are rejected as out of credits
    - The stored balance ends at 0, never negative
    """
    credits, attempts = 3, 8
    user_package = await grant_package(user, trial_count=credits)

    async def attempt():
        async with session_factory() as session:
            decision, _ = await guard_for(session).reserve(user.id)
            return decision

    decisions = await asyncio.gather(*(attempt() for _ in range(attempts)))

    allowed = [d for d in decisions if d.allowed]
    rejected = [d for d in decisions if not d.allowed]
    assert len(allowed) == credits
    assert len(rejected) == attempts - credits
    assert all(d.reason is RejectionReason.NO_TRIALS_REMAINING for d in rejected)

    stored = await UserPackageRepository(test_db).get_by_id(user_package.id)
    assert stored.trials_remaining == 0


@pytest.mark.asyncio
async def test_concurrent_reservations_respect_the_cycle_quota(session_factory, test_db, user, grant_package):
    """
    Test C parallel reservations against a subscription one use short of its limit.

    This test verifies:
    - Exactly one reservation gets the last slot of the cycle
    - Every other attempt is rejected as over the cycle limit
    - Stored usage ends exactly at the limit, never above it
    """
    limit, attempts = 5, 8
    user_package = await grant_package(user, is_subscription=True, cycle_limit=limit)
    user_package.trials_used_in_cycle = limit - 1
    await test_db.commit()

    async def attempt():
        async with session_factory() as session:
            decision, _ = await guard_for(session).reserve(user.id)
            return decision

    decisions = await asyncio.gather(*(attempt() for _ in range(attempts)))

    allowed = [d for d in decisions if d.allowed]
    rejected = [d for d in decisions if not d.allowed]
    assert len(allowed) == 1
    assert len(rejected) == attempts - 1
    assert all(d.reason is RejectionReason.CYCLE_LIMIT_REACHED for d in rejected)

    stored = await UserPackageRepository(test_db).get_by_id(user_package.id)
    assert stored.trials_used_in_cycle == limit
