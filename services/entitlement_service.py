"""
Entitlement Guard - decides whether a user may generate a trial and keeps
their package counters correct under concurrent commands
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from crud.package import UserPackageRepository
from database_models import UserPackage
from models.entitlement import AuthDecision, RejectionReason, Reservation
from services.billing_clock import roll_forward
from services.payment_service import PaymentService
from utils.shared_utils import utcnow
from utils.user_locks import UserLockRegistry, user_locks

logger = logging.getLogger(__name__)


class EntitlementGuard:
    """
    Authorization and accounting for trial generation.

    Every read-modify-write of a user's package happens while holding that
    user's lock, and credits are taken with a conditional UPDATE, so parallel
    commands can never spend more credits than the package holds. Methods
    that change counters commit before releasing the lock.
    """

    def __init__(
        self,
        db: AsyncSession,
        payment_service: Optional[PaymentService] = None,
        locks: Optional[UserLockRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.user_packages = UserPackageRepository(db)
        self.payment_service = payment_service or PaymentService()
        self.locks = locks or user_locks
        self.clock = clock

    async def _evaluate(self, user_id: int, now: datetime) -> AuthDecision:
        user_package = await self.user_packages.get_active(user_id)
        if user_package is None:
            return AuthDecision.reject(RejectionReason.NO_ACTIVE_PACKAGE)

        if user_package.is_subscription:
            rolled = roll_forward(user_package, now)
            if not await self.payment_service.subscription_is_active(user_package, now):
                user_package.is_active = False
                await self.user_packages.save(user_package)
                logger.info(f"Subscription {user_package.id} for user {user_id} has lapsed, deactivated")
                return AuthDecision.reject(RejectionReason.SUBSCRIPTION_EXPIRED, user_package)
            if rolled:
                # An auto-renewing subscription is billed for each cycle it enters
                if user_package.cancelled_at is None and (
                    user_package.paid_through is None or user_package.paid_through < user_package.renewal_date
                ):
                    user_package.paid_through = user_package.renewal_date
                await self.user_packages.save(user_package)

        reason = user_package.entitlement.check()
        if reason is not None:
            return AuthDecision.reject(reason, user_package)
        return AuthDecision.accept(user_package)

    async def authorize(self, user_id: int, now: Optional[datetime] = None) -> AuthDecision:
        """
        Check whether the user may generate a trial right now.

        Applies any pending cycle rollovers, then deactivates the subscription
        if billing reports it lapsed. Does not consume a credit.
        """
        async with self.locks.lock_for(user_id):
            decision = await self._evaluate(user_id, now or self.clock())
            await self.db.commit()
        return decision

    async def settle(self, user_package: UserPackage, succeeded: bool) -> UserPackage:
        """Record the outcome of one generation against the package counters."""
        async with self.locks.lock_for(user_package.user_id):
            await self.db.refresh(user_package)
            entitlement = user_package.entitlement.settle(succeeded)
            if user_package.is_subscription:
                user_package.trials_used_in_cycle = entitlement.used
            else:
                user_package.trials_remaining = entitlement.remaining
            await self.user_packages.save(user_package)
            await self.db.commit()
        return user_package

    async def reserve(
        self, user_id: int, now: Optional[datetime] = None
    ) -> Tuple[AuthDecision, Optional[Reservation]]:
        """
        Authorize and take one credit in a single critical section.

        Returns the decision and, when allowed, the reservation to hand back
        to release() if generation fails.
        """
        async with self.locks.lock_for(user_id):
            decision = await self._evaluate(user_id, now or self.clock())
            reservation = None
            if decision.allowed:
                user_package = decision.user_package
                reservation = await self.user_packages.consume_credit(user_package)
                if reservation is None:
                    reason = user_package.entitlement.check() or (
                        RejectionReason.CYCLE_LIMIT_REACHED
                        if user_package.is_subscription
                        else RejectionReason.NO_TRIALS_REMAINING
                    )
                    decision = AuthDecision.reject(reason, user_package)
            await self.db.commit()

        if decision.allowed:
            logger.info(f"Reserved trial credit for user {user_id} on package {reservation.user_package_id}")
        else:
            logger.info(f"Trial generation refused for user {user_id}: {decision.reason.value}")
        return decision, reservation

    async def release(self, reservation: Reservation) -> bool:
        """Return a reserved credit after a failed generation."""
        async with self.locks.lock_for(reservation.user_id):
            restored = await self.user_packages.restore_credit(reservation)
            await self.db.commit()
        if restored:
            logger.info(f"Restored trial credit on package {reservation.user_package_id}")
        return restored

    async def refresh(self, user_id: int, now: Optional[datetime] = None) -> Optional[UserPackage]:
        """
        The user's current package after rollovers and billing checks.

        A subscription that lapsed during this check is still returned, now
        inactive, so the caller can offer a renewal.
        """
        decision = await self.authorize(user_id, now)
        return decision.user_package
