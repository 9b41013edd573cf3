from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PurchaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package_id: int = Field(..., alias="packageId")
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    stripe_subscription_id: Optional[str] = Field(default=None, alias="stripeSubscriptionId")


class RenewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    wallet_address: str = Field(..., alias="walletAddress")
    transaction_id: str = Field(..., alias="transactionId")
    stripe_subscription_id: Optional[str] = Field(default=None, alias="stripeSubscriptionId")
