"""
Package Service - catalog reads, purchases and subscription renewals
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crud.package import PackageRepository, UserPackageRepository
from database_models import Package, UserPackage
from services.billing_clock import add_months, anchor_day_for
from services.entitlement_service import EntitlementGuard
from services.payment_service import PaymentService
from utils.shared_utils import utcnow
from utils.user_locks import UserLockRegistry, user_locks

logger = logging.getLogger(__name__)


class PackageError(Exception):
    """Base class for purchase and renewal failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PackageNotFoundError(PackageError):
    status_code = 404


class ActivePackageExistsError(PackageError):
    pass


class PaymentVerificationError(PackageError):
    pass


class SubscriptionNotFoundError(PackageError):
    status_code = 404


class PackageService:

    def __init__(
        self,
        db: AsyncSession,
        payment_service: Optional[PaymentService] = None,
        locks: Optional[UserLockRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.packages = PackageRepository(db)
        self.user_packages = UserPackageRepository(db)
        self.payment_service = payment_service or PaymentService()
        self.locks = locks or user_locks
        self.clock = clock
        self.guard = EntitlementGuard(db, self.payment_service, self.locks, clock)

    async def list_packages(self) -> List[Package]:
        return await self.packages.list_packages()

    async def get_current(self, user_id: int) -> Optional[UserPackage]:
        return await self.guard.refresh(user_id)

    async def _verify_payment(self, wallet_address, transaction_id, amount: int):
        verification = await self.payment_service.verify_transaction(wallet_address, transaction_id, amount)
        if not verification.success:
            raise PaymentVerificationError(verification.message)

    def _blocks_new_package(self, current: Optional[UserPackage]) -> bool:
        """An active subscription, or a one-shot package with credit left, holds the user's one active slot."""
        if current is None or not current.is_active:
            return False
        return bool(current.is_subscription) or current.entitlement.check() is None

    async def _retire(self, user_package: UserPackage):
        user_package.is_active = False
        await self.user_packages.save(user_package)
        logger.info(f"Retired used-up package {user_package.id} for user {user_package.user_id}")

    async def purchase(
        self,
        user_id: int,
        package_id: int,
        wallet_address: Optional[str] = None,
        transaction_id: Optional[str] = None,
        stripe_subscription_id: Optional[str] = None,
    ) -> UserPackage:
        """
        Buy a package for a user.

        Paid packages need a valid payment proof. A user holds at most one
        active package. A lapsed subscription or a used-up one-shot package
        is retired so it does not block the new purchase. A subscription may
        be linked to Stripe, which then owns its billing status.
        """
        package = await self.packages.get_package(package_id)
        if package is None:
            raise PackageNotFoundError("Package not found")

        # Settles rollovers and lapsed subscriptions before the active check
        current = await self.guard.refresh(user_id)

        async with self.locks.lock_for(user_id):
            if self._blocks_new_package(current):
                raise ActivePackageExistsError("You already have an active package")

            if package.price > 0:
                await self._verify_payment(wallet_address, transaction_id, package.price)

            if current is not None and current.is_active:
                await self._retire(current)

            now = self.clock()
            renewal_date = add_months(now, 1) if package.is_subscription else None
            try:
                user_package = await self.user_packages.create(
                    user_id=user_id,
                    package=package,
                    purchased_at=now,
                    renewal_date=renewal_date,
                    transaction_id=transaction_id,
                    wallet_address=wallet_address,
                    stripe_subscription_id=stripe_subscription_id,
                )
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise ActivePackageExistsError("You already have an active package")

        logger.info(f"User {user_id} purchased package {package.id} ({package.name})")
        return user_package

    async def renew(
        self,
        user_id: int,
        wallet_address: str,
        transaction_id: str,
        stripe_subscription_id: Optional[str] = None,
    ) -> UserPackage:
        """
        Pay for another month of the user's latest subscription.

        A lapsed subscription starts a fresh cycle from now. A current one
        moves straight into its next cycle and extends paid coverage by a month.
        Either way auto-renewal is switched back on. A used-up one-shot package
        standing in the way is retired, as on purchase.
        """
        current = await self.guard.refresh(user_id)

        async with self.locks.lock_for(user_id):
            subscription = await self.user_packages.get_latest_subscription(user_id)
            if subscription is None:
                raise SubscriptionNotFoundError("No subscription found")

            other_active = current is not None and current.is_active and current.id != subscription.id
            if other_active and self._blocks_new_package(current):
                raise ActivePackageExistsError("You already have an active package")

            await self._verify_payment(wallet_address, transaction_id, subscription.package.price)

            if other_active:
                await self._retire(current)

            now = self.clock()
            lapsed = not subscription.is_active
            if lapsed:
                subscription.cycle_anchor_day = now.day
                subscription.renewal_date = add_months(now, 1, now.day)
                subscription.paid_through = subscription.renewal_date
            else:
                anchor = anchor_day_for(subscription)
                subscription.renewal_date = add_months(subscription.renewal_date, 1, anchor)
                subscription.paid_through = add_months(subscription.paid_through or now, 1, anchor)

            subscription.trials_used_in_cycle = 0
            subscription.is_active = True
            subscription.cancelled_at = None
            subscription.transaction_id = transaction_id
            subscription.wallet_address = wallet_address
            if stripe_subscription_id:
                subscription.stripe_subscription_id = stripe_subscription_id
            await self.user_packages.save(subscription)
            await self.db.commit()

        logger.info(
            f"User {user_id} renewed subscription {subscription.id}"
            f" ({'fresh cycle' if lapsed else 'extended'}), paid through {subscription.paid_through.isoformat()}"
        )
        return subscription

    async def cancel(self, user_id: int) -> UserPackage:
        """
        Turn off auto-renewal for the user's active subscription.

        The subscription keeps working until its paid coverage runs out and
        then lapses at the next entitlement check. Cancelling twice keeps the
        first cancellation time.
        """
        current = await self.guard.refresh(user_id)

        async with self.locks.lock_for(user_id):
            if current is None or not current.is_active or not current.is_subscription:
                raise SubscriptionNotFoundError("No active subscription found")

            if current.cancelled_at is None:
                current.cancelled_at = self.clock()
                await self.user_packages.save(current)
                await self.db.commit()
                logger.info(
                    f"User {user_id} cancelled subscription {current.id}, "
                    f"paid through {current.paid_through.isoformat() if current.paid_through else 'open'}"
                )
        return current
