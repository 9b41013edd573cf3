"""
Tests for the per-package accounting rules
"""
from datetime import datetime

import pytest

from models.entitlement import (
    REJECTION_MESSAGES,
    UNLIMITED_TRIALS,
    AuthDecision,
    OneShotEntitlement,
    RejectionReason,
    SubscriptionEntitlement,
)


@pytest.mark.parametrize("start,successes", [(3, 2), (3, 3), (3, 7), (0, 1), (1, 0)])
def test_one_shot_credits_never_go_negative(start, successes):
    entitlement = OneShotEntitlement(remaining=start)
    for _ in range(successes):
        entitlement = entitlement.settle(succeeded=True)
    assert entitlement.remaining == max(start - successes, 0)


def test_failed_generation_does_not_spend_a_credit():
    entitlement = OneShotEntitlement(remaining=2)
    assert entitlement.settle(succeeded=False).remaining == 2


def test_unlimited_one_shot_is_never_decremented_or_rejected():
    entitlement = OneShotEntitlement(remaining=UNLIMITED_TRIALS)
    for _ in range(50):
        entitlement = entitlement.settle(succeeded=True)
    assert entitlement.remaining == UNLIMITED_TRIALS
    assert entitlement.check() is None


def test_exhausted_one_shot_is_rejected():
    assert OneShotEntitlement(remaining=0).check() is RejectionReason.NO_TRIALS_REMAINING
    assert OneShotEntitlement(remaining=1).check() is None


def test_cycle_quota_is_never_exceeded():
    entitlement = SubscriptionEntitlement(used=0, limit=15, renewal_date=datetime(2026, 2, 15))
    for _ in range(20):
        entitlement = entitlement.settle(succeeded=True)
    assert entitlement.used == 15
    assert entitlement.remaining_in_cycle == 0
    assert entitlement.check() is RejectionReason.CYCLE_LIMIT_REACHED


def test_decision_messages():
    assert AuthDecision.accept(user_package=None).message == "Authorized"
    rejected = AuthDecision.reject(RejectionReason.NO_TRIALS_REMAINING)
    assert rejected.allowed is False
    assert "no trials remaining" in rejected.message.lower()
    assert set(REJECTION_MESSAGES) == set(RejectionReason)
