"""
Billing Cycle Clock - renewal boundaries and usage rollover for subscriptions
"""

import logging
from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

# Upper bound on catch-up rollovers applied in one evaluation (ten years of cycles)
MAX_CATCH_UP_CYCLES = 120


def add_months(value: datetime, months: int, anchor_day: Optional[int] = None) -> datetime:
    """
    Calendar month arithmetic, clamped to the last valid day of the target month.

    When anchor_day is given the result lands on that day of the month where it
    exists, so a subscription bought on the 31st renews on Jan 31, Feb 28/29,
    Mar 31 instead of drifting to the 28th.
    """
    if anchor_day is None:
        return value + relativedelta(months=months)
    return value + relativedelta(months=months, day=anchor_day)


def anchor_day_for(user_package) -> Optional[int]:
    anchor = getattr(user_package, "cycle_anchor_day", None)
    if anchor:
        return anchor
    purchased_at = getattr(user_package, "purchased_at", None)
    return purchased_at.day if purchased_at else None


def is_expired(user_package, now: datetime) -> bool:
    """True when a subscription's current cycle has ended."""
    if not user_package.is_subscription or user_package.renewal_date is None:
        return False
    return now >= user_package.renewal_date


def rollover(user_package, now: datetime):
    """
    Start the next billing cycle if the current one has ended.

    Resets cycle usage and advances renewal_date by exactly one month. A no-op
    when the cycle has not ended, so applying it twice is the same as once.
    Mutates and returns the given record.
    """
    if not is_expired(user_package, now):
        return user_package

    previous = user_package.renewal_date
    user_package.trials_used_in_cycle = 0
    user_package.renewal_date = add_months(previous, 1, anchor_day_for(user_package))
    user_package.is_active = True
    logger.info(
        f"Rolled over user package {user_package.id}: renewal {previous.isoformat()} -> "
        f"{user_package.renewal_date.isoformat()}"
    )
    return user_package


def roll_forward(user_package, now: datetime) -> int:
    """Apply rollovers until the renewal date is in the future. Returns how many ran."""
    cycles = 0
    while is_expired(user_package, now) and cycles < MAX_CATCH_UP_CYCLES:
        rollover(user_package, now)
        cycles += 1
    return cycles
