from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from database import Base
from models.entitlement import OneShotEntitlement, SubscriptionEntitlement, UNLIMITED_TRIALS
from utils.shared_utils import utcnow, to_iso


class User(Base):
    """
    Registered account. Identity for every entitlement and ledger call.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Package(Base):
    """
    Catalog entry. Immutable after creation.

    trial_count is a one-shot grant, or -1 for unlimited. Subscription
    semantics come from the is_subscription flag and cycle_limit, both fixed
    when the catalog is defined.
    """
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)  # minor currency units
    trial_count = Column(Integer, nullable=False)
    features = Column(JSON, nullable=False, default=list)
    is_best_value = Column(Boolean, default=False, nullable=False)
    icon = Column(String, nullable=False)
    is_subscription = Column(Boolean, default=False, nullable=False)
    cycle_limit = Column(Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "trialCount": self.trial_count,
            "features": list(self.features or []),
            "isBestValue": bool(self.is_best_value),
            "icon": self.icon,
            "isSubscription": bool(self.is_subscription),
            "cycleLimit": self.cycle_limit,
        }


class UserPackage(Base):
    """
    A user's entitlement record.

    Only one row per user may be active; the partial unique index backs the
    check done at purchase time.
    """
    __tablename__ = "user_packages"
    __table_args__ = (
        Index(
            "uq_user_packages_active_user",
            "user_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False)
    purchased_at = Column(DateTime, default=utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # One-shot accounting
    trials_remaining = Column(Integer, nullable=False, default=0)

    # Subscription accounting
    is_subscription = Column(Boolean, default=False, nullable=False)
    renewal_date = Column(DateTime, nullable=True)
    trial_limit_per_cycle = Column(Integer, nullable=True)
    trials_used_in_cycle = Column(Integer, nullable=False, default=0)
    cycle_anchor_day = Column(Integer, nullable=True)  # day of month cycles renew on

    # Billing
    paid_through = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)  # set when auto-renewal is turned off
    transaction_id = Column(String, nullable=True)
    wallet_address = Column(String, nullable=True)
    stripe_subscription_id = Column(String, nullable=True)

    package = relationship("Package", lazy="joined")

    @property
    def entitlement(self):
        """Accounting view of this record: one-shot credits or a cycle quota."""
        if self.is_subscription:
            return SubscriptionEntitlement(
                used=self.trials_used_in_cycle or 0,
                limit=self.trial_limit_per_cycle or 0,
                renewal_date=self.renewal_date,
            )
        return OneShotEntitlement(remaining=self.trials_remaining)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "packageId": self.package_id,
            "packageName": self.package.name if self.package is not None else "Unknown",
            "purchasedAt": to_iso(self.purchased_at),
            "trialsRemaining": self.trials_remaining,
            "isUnlimited": not self.is_subscription and self.trials_remaining == UNLIMITED_TRIALS,
            "isActive": bool(self.is_active),
            "isSubscription": bool(self.is_subscription),
        }
        if self.is_subscription:
            used = self.trials_used_in_cycle or 0
            limit = self.trial_limit_per_cycle or 0
            data.update({
                "renewalDate": to_iso(self.renewal_date),
                "paidThrough": to_iso(self.paid_through),
                "autoRenew": self.cancelled_at is None,
                "cancelledAt": to_iso(self.cancelled_at),
                "trialLimitPerCycle": limit,
                "trialsUsedInCycle": used,
                "trialsRemainingInCycle": max(limit - used, 0),
            })
        return data


class CommandExecution(Base):
    """
    Ledger entry. Written once per command attempt, never updated.
    """
    __tablename__ = "command_executions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    command = Column(Text, nullable=False)
    service_name = Column(String, nullable=False)
    status = Column(String, nullable=False)  # success | error
    message = Column(Text, nullable=False)
    executed_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    trial_data = Column(JSON, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "command": self.command,
            "serviceName": self.service_name,
            "status": self.status,
            "message": self.message,
            "executedAt": to_iso(self.executed_at),
            "trialData": self.trial_data,
        }


class Note(Base):
    """
    Notebook note. Trial results are persisted here as markdown.
    """
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    color = Column(String, nullable=True)
    is_pinned = Column(Boolean, default=False, nullable=False)
    is_archived = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "color": self.color,
            "isPinned": bool(self.is_pinned),
            "isArchived": bool(self.is_archived),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }
