"""
Repositories for the package catalog and users' entitlement records
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import Package, UserPackage
from models.entitlement import Reservation, UNLIMITED_TRIALS

logger = logging.getLogger(__name__)

DEFAULT_PACKAGES = [
    {
        "name": "Single Trial",
        "price": 99,
        "trial_count": 1,
        "features": ["1 Trial Generation", "One-time Purchase", "Try Before You Subscribe"],
        "is_best_value": False,
        "icon": "rocket",
        "is_subscription": False,
        "cycle_limit": None,
    },
    {
        "name": "Monthly Basic",
        "price": 1500,
        "trial_count": UNLIMITED_TRIALS,
        "features": ["15 Trials Every Month", "All Command Access", "Cancel Anytime"],
        "is_best_value": False,
        "icon": "gem",
        "is_subscription": True,
        "cycle_limit": 15,
    },
    {
        "name": "Monthly Premium",
        "price": 3000,
        "trial_count": UNLIMITED_TRIALS,
        "features": ["30 Trials Every Month", "Premium Features", "Priority Support", "Premium Commands"],
        "is_best_value": True,
        "icon": "crown",
        "is_subscription": True,
        "cycle_limit": 30,
    },
    {
        "name": "Lifetime",
        "price": 19900,
        "trial_count": UNLIMITED_TRIALS,
        "features": ["Unlimited Lifetime Trials", "All Current & Future Features", "VIP Support", "Ultimate Freedom"],
        "is_best_value": False,
        "icon": "infinity",
        "is_subscription": False,
        "cycle_limit": None,
    },
]


class PackageRepository:
    """Read access to the package catalog plus first-run seeding."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_packages(self) -> List[Package]:
        result = await self.db.execute(select(Package).order_by(Package.id))
        return list(result.scalars().all())

    async def get_package(self, package_id: int) -> Optional[Package]:
        result = await self.db.execute(select(Package).where(Package.id == package_id))
        return result.scalar_one_or_none()

    async def create_package(self, package_data: dict) -> Package:
        package = Package(**package_data)
        self.db.add(package)
        await self.db.flush()
        await self.db.refresh(package)
        return package

    async def ensure_default_packages(self) -> int:
        """Seed the default catalog when it is empty. Returns how many were created."""
        existing = await self.list_packages()
        if existing:
            return 0
        for package_data in DEFAULT_PACKAGES:
            await self.create_package(dict(package_data))
        logger.info(f"Seeded {len(DEFAULT_PACKAGES)} default packages")
        return len(DEFAULT_PACKAGES)


class UserPackageRepository:
    """
    Database operations on UserPackage.

    Credit consumption and restoration are single conditional UPDATE
    statements so two requests can never spend the same credit.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active(self, user_id: int) -> Optional[UserPackage]:
        result = await self.db.execute(
            select(UserPackage)
            .where(UserPackage.user_id == user_id, UserPackage.is_active.is_(True))
            .order_by(UserPackage.id.desc())
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_latest_subscription(self, user_id: int) -> Optional[UserPackage]:
        result = await self.db.execute(
            select(UserPackage)
            .where(UserPackage.user_id == user_id, UserPackage.is_subscription.is_(True))
            .order_by(UserPackage.id.desc())
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_by_id(self, user_package_id: int) -> Optional[UserPackage]:
        result = await self.db.execute(
            select(UserPackage)
            .where(UserPackage.id == user_package_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        user_id: int,
        package: Package,
        purchased_at: datetime,
        renewal_date: Optional[datetime] = None,
        transaction_id: Optional[str] = None,
        wallet_address: Optional[str] = None,
        stripe_subscription_id: Optional[str] = None,
    ) -> UserPackage:
        user_package = UserPackage(
            user_id=user_id,
            package_id=package.id,
            package=package,
            purchased_at=purchased_at,
            is_active=True,
            trials_remaining=package.trial_count,
            is_subscription=bool(package.is_subscription),
            transaction_id=transaction_id,
            wallet_address=wallet_address,
        )
        if package.is_subscription:
            user_package.renewal_date = renewal_date
            user_package.paid_through = renewal_date
            user_package.trial_limit_per_cycle = package.cycle_limit or 0
            user_package.trials_used_in_cycle = 0
            user_package.cycle_anchor_day = purchased_at.day
            user_package.stripe_subscription_id = stripe_subscription_id

        self.db.add(user_package)
        await self.db.flush()
        await self.db.refresh(user_package)
        return user_package

    async def save(self, user_package: UserPackage) -> UserPackage:
        await self.db.flush()
        await self.db.refresh(user_package)
        return user_package

    async def consume_credit(self, user_package: UserPackage) -> Optional[Reservation]:
        """
        Atomically take one credit from an active package.

        Unlimited one-shot packages are never decremented; the returned
        reservation has consumed=True only when a counter actually moved.
        Returns None when no credit was available at write time.
        """
        if user_package.is_subscription:
            stmt = (
                update(UserPackage)
                .where(
                    UserPackage.id == user_package.id,
                    UserPackage.is_active.is_(True),
                    UserPackage.trials_used_in_cycle < UserPackage.trial_limit_per_cycle,
                )
                .values(trials_used_in_cycle=UserPackage.trials_used_in_cycle + 1)
            )
        elif user_package.trials_remaining == UNLIMITED_TRIALS:
            return Reservation(
                user_package_id=user_package.id,
                user_id=user_package.user_id,
                is_subscription=False,
                consumed=False,
            )
        else:
            stmt = (
                update(UserPackage)
                .where(
                    UserPackage.id == user_package.id,
                    UserPackage.is_active.is_(True),
                    UserPackage.trials_remaining > 0,
                )
                .values(trials_remaining=UserPackage.trials_remaining - 1)
            )

        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        await self.db.refresh(user_package)
        if result.rowcount != 1:
            return None

        return Reservation(
            user_package_id=user_package.id,
            user_id=user_package.user_id,
            is_subscription=bool(user_package.is_subscription),
            consumed=True,
            renewal_date=user_package.renewal_date,
        )

    async def restore_credit(self, reservation: Reservation) -> bool:
        """
        Give back a consumed credit.

        A subscription credit is only restored into the cycle it was taken
        from; if the cycle has rolled over since, usage was already reset.
        """
        if not reservation.consumed:
            return False

        if reservation.is_subscription:
            stmt = (
                update(UserPackage)
                .where(
                    UserPackage.id == reservation.user_package_id,
                    UserPackage.renewal_date == reservation.renewal_date,
                    UserPackage.trials_used_in_cycle > 0,
                )
                .values(trials_used_in_cycle=UserPackage.trials_used_in_cycle - 1)
            )
        else:
            stmt = (
                update(UserPackage)
                .where(
                    UserPackage.id == reservation.user_package_id,
                    UserPackage.trials_remaining != UNLIMITED_TRIALS,
                )
                .values(trials_remaining=UserPackage.trials_remaining + 1)
            )

        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount == 1
