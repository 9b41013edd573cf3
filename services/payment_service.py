"""
Payment Service - payment proof verification and subscription billing status
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import stripe

from config.settings import settings
from utils.shared_utils import utcnow

logger = logging.getLogger(__name__)

WALLET_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
TRANSACTION_ID_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")

# Stripe subscription states that still grant access
STRIPE_ACTIVE_STATUSES = {"active", "trialing"}

if settings.stripe_secret_key:
    stripe.api_key = settings.stripe_secret_key
else:
    logger.warning("STRIPE_SECRET_KEY is not set. Linked subscriptions will use local billing status.")


@dataclass
class PaymentVerificationResult:
    success: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


class PaymentService:
    """
    Verifies payment proofs and reports whether a subscription is still paid.

    Transaction verification only validates the proof format; a real
    implementation would confirm the transaction on chain.
    """

    def is_valid_wallet_address(self, address: Optional[str]) -> bool:
        return bool(address) and WALLET_ADDRESS_PATTERN.match(address) is not None

    def is_valid_transaction_id(self, transaction_id: Optional[str]) -> bool:
        return bool(transaction_id) and TRANSACTION_ID_PATTERN.match(transaction_id) is not None

    async def verify_transaction(
        self,
        wallet_address: Optional[str],
        transaction_id: Optional[str],
        amount: int,
    ) -> PaymentVerificationResult:
        """
        Verify a payment proof.

        Args:
            wallet_address: Payer wallet (0x + 40 hex chars)
            transaction_id: Transaction hash (0x + 64 hex chars)
            amount: Expected amount in minor currency units

        Returns:
            PaymentVerificationResult with success flag and message
        """
        if not self.is_valid_wallet_address(wallet_address):
            return PaymentVerificationResult(success=False, message="Invalid wallet address format")

        if not self.is_valid_transaction_id(transaction_id):
            return PaymentVerificationResult(success=False, message="Invalid transaction ID format")

        logger.info(f"Verified transaction {transaction_id} for amount {amount}")
        return PaymentVerificationResult(
            success=True,
            message="Transaction verified successfully",
            data={
                "timestamp": utcnow().isoformat(),
                "confirmations": 12,
                "verifiedAmount": amount,
            },
        )

    async def subscription_is_active(self, user_package, now: Optional[datetime] = None) -> bool:
        """
        Report whether a subscription is still paid for.

        Subscriptions linked to Stripe ask Stripe. Everything else renews
        automatically until cancelled; a cancelled subscription stays active
        while the last payment still covers `now`.
        """
        now = now or utcnow()

        if user_package.stripe_subscription_id and settings.stripe_secret_key:
            try:
                subscription = await asyncio.to_thread(
                    stripe.Subscription.retrieve, user_package.stripe_subscription_id
                )
                status = subscription.status
                logger.info(f"Stripe status for user package {user_package.id}: {status}")
                return status in STRIPE_ACTIVE_STATUSES
            except stripe.StripeError as e:
                logger.warning(
                    f"Stripe lookup failed for user package {user_package.id}: {e}. Using local billing status."
                )

        if not user_package.is_active:
            return False
        if user_package.cancelled_at is None or user_package.paid_through is None:
            return True
        return now < user_package.paid_through
