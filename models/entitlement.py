from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from database_models import UserPackage

UNLIMITED_TRIALS = -1


class RejectionReason(str, Enum):
    NO_ACTIVE_PACKAGE = "no_active_package"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    CYCLE_LIMIT_REACHED = "cycle_limit_reached"
    NO_TRIALS_REMAINING = "no_trials_remaining"


REJECTION_MESSAGES = {
    RejectionReason.NO_ACTIVE_PACKAGE: "You need an active package to generate trials",
    RejectionReason.SUBSCRIPTION_EXPIRED: "Your subscription has expired. Please renew it to keep generating trials.",
    RejectionReason.CYCLE_LIMIT_REACHED: "You have reached your trial limit for this billing cycle.",
    RejectionReason.NO_TRIALS_REMAINING: "You have no trials remaining. Please upgrade your package.",
}


@dataclass(frozen=True)
class OneShotEntitlement:
    """Finite credit balance, or unlimited when remaining is -1."""
    remaining: int

    @property
    def is_unlimited(self) -> bool:
        return self.remaining == UNLIMITED_TRIALS

    def check(self) -> Optional[RejectionReason]:
        if self.is_unlimited:
            return None
        if self.remaining <= 0:
            return RejectionReason.NO_TRIALS_REMAINING
        return None

    def settle(self, succeeded: bool) -> "OneShotEntitlement":
        if not succeeded or self.is_unlimited:
            return self
        return replace(self, remaining=max(self.remaining - 1, 0))


@dataclass(frozen=True)
class SubscriptionEntitlement:
    """Per-cycle quota of a recurring package."""
    used: int
    limit: int
    renewal_date: Optional[datetime]

    @property
    def remaining_in_cycle(self) -> int:
        return max(self.limit - self.used, 0)

    def check(self) -> Optional[RejectionReason]:
        if self.used >= self.limit:
            return RejectionReason.CYCLE_LIMIT_REACHED
        return None

    def settle(self, succeeded: bool) -> "SubscriptionEntitlement":
        if not succeeded:
            return self
        return replace(self, used=min(self.used + 1, self.limit))


Entitlement = Union[OneShotEntitlement, SubscriptionEntitlement]


@dataclass
class AuthDecision:
    allowed: bool
    reason: Optional[RejectionReason] = None
    user_package: Optional["UserPackage"] = None

    @property
    def message(self) -> str:
        if self.reason is None:
            return "Authorized"
        return REJECTION_MESSAGES[self.reason]

    @classmethod
    def accept(cls, user_package) -> "AuthDecision":
        return cls(allowed=True, user_package=user_package)

    @classmethod
    def reject(cls, reason: RejectionReason, user_package=None) -> "AuthDecision":
        return cls(allowed=False, reason=reason, user_package=user_package)


@dataclass(frozen=True)
class Reservation:
    """One credit taken from a user package ahead of generation."""
    user_package_id: int
    user_id: int
    is_subscription: bool
    consumed: bool
    renewal_date: Optional[datetime] = None
