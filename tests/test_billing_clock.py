"""
Tests for subscription cycle arithmetic and rollover
"""
from datetime import datetime
from types import SimpleNamespace

from services.billing_clock import MAX_CATCH_UP_CYCLES, add_months, is_expired, roll_forward, rollover


def make_subscription(renewal_date, used=4, limit=15, purchased_at=None, anchor=None):
    return SimpleNamespace(
        id=1,
        is_subscription=True,
        is_active=True,
        purchased_at=purchased_at or datetime(2026, 1, 31, 9, 0),
        cycle_anchor_day=anchor,
        renewal_date=renewal_date,
        trials_used_in_cycle=used,
        trial_limit_per_cycle=limit,
    )


def test_add_months_clamps_to_month_end():
    assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
    assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)
    assert add_months(datetime(2026, 12, 15, 8, 30), 1) == datetime(2027, 1, 15, 8, 30)


def test_anchor_day_prevents_drift():
    """Jan 31 -> Feb 28 -> Mar 31, not Mar 28."""
    feb = add_months(datetime(2026, 1, 31), 1, anchor_day=31)
    mar = add_months(feb, 1, anchor_day=31)
    apr = add_months(mar, 1, anchor_day=31)
    assert (feb.day, mar.day, apr.day) == (28, 31, 30)


def test_is_expired_boundary():
    sub = make_subscription(datetime(2026, 2, 28, 9, 0))
    assert is_expired(sub, datetime(2026, 2, 28, 8, 59)) is False
    assert is_expired(sub, datetime(2026, 2, 28, 9, 0)) is True

    one_shot = SimpleNamespace(is_subscription=False, renewal_date=None)
    assert is_expired(one_shot, datetime(2030, 1, 1)) is False


def test_rollover_resets_usage_and_advances_one_month():
    sub = make_subscription(datetime(2026, 2, 28, 9, 0), used=15)
    rollover(sub, datetime(2026, 3, 1))

    assert sub.trials_used_in_cycle == 0
    assert sub.renewal_date == datetime(2026, 3, 31, 9, 0)
    assert sub.is_active is True


def test_rollover_is_idempotent():
    sub = make_subscription(datetime(2026, 2, 28, 9, 0), used=7)
    now = datetime(2026, 3, 1)
    rollover(sub, now)
    state = (sub.trials_used_in_cycle, sub.renewal_date)
    rollover(sub, now)
    assert (sub.trials_used_in_cycle, sub.renewal_date) == state


def test_rollover_before_renewal_is_a_no_op():
    sub = make_subscription(datetime(2026, 2, 28, 9, 0), used=7)
    rollover(sub, datetime(2026, 2, 20))
    assert sub.trials_used_in_cycle == 7
    assert sub.renewal_date == datetime(2026, 2, 28, 9, 0)


def test_roll_forward_catches_up_missed_cycles():
    sub = make_subscription(datetime(2026, 2, 28, 9, 0), used=3)
    cycles = roll_forward(sub, datetime(2026, 6, 10))

    assert cycles == 4
    assert sub.renewal_date == datetime(2026, 6, 30, 9, 0)
    assert sub.trials_used_in_cycle == 0


def test_explicit_cycle_anchor_wins_over_purchase_day():
    sub = make_subscription(datetime(2026, 3, 10, 9, 0), anchor=10)
    rollover(sub, datetime(2026, 3, 11))
    assert sub.renewal_date == datetime(2026, 4, 10, 9, 0)


def test_roll_forward_is_bounded():
    sub = make_subscription(datetime(1900, 1, 31))
    assert roll_forward(sub, datetime(2026, 1, 1)) == MAX_CATCH_UP_CYCLES
