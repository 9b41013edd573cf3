"""
Packages Router - catalog, current entitlement, purchase, renewal and cancellation
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.responses import error_response, success_response
from database import get_db
from models.package import PurchaseRequest, RenewRequest
from services.package_service import PackageError, PackageService
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

packages_router = APIRouter(prefix="/api", tags=["packages"])


def _package_error(endpoint: str, user_id: int, error: PackageError):
    log_endpoint_event(endpoint, user_id=user_id, result="error", details={"error": error.message})
    return error_response(
        type(error).__name__,
        status=error.status_code,
        message=error.message,
    )


@packages_router.get("/packages")
async def list_packages(db: AsyncSession = Depends(get_db)):
    """The package catalog. Public."""
    packages = await PackageService(db).list_packages()
    return success_response(data=[package.to_dict() for package in packages])


@packages_router.get("/user/package")
async def get_user_package(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's current package, after any pending cycle rollover."""
    user_package = await PackageService(db).get_current(current_user["user_id"])
    if user_package is None:
        return error_response("no_active_package", status=404, message="No active package")
    return success_response(data=user_package.to_dict())


@packages_router.post("/packages/purchase")
async def purchase_package(
    request: PurchaseRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = current_user["user_id"]
    try:
        user_package = await PackageService(db).purchase(
            user_id,
            request.package_id,
            wallet_address=request.wallet_address,
            transaction_id=request.transaction_id,
            stripe_subscription_id=request.stripe_subscription_id,
        )
    except PackageError as e:
        return _package_error("/packages/purchase", user_id, e)

    log_endpoint_event("/packages/purchase", user_id=user_id, details={"packageId": request.package_id})
    return success_response(data=user_package.to_dict(), message="Package purchased successfully", status=201)


@packages_router.post("/packages/renew")
async def renew_subscription(
    request: RenewRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = current_user["user_id"]
    try:
        user_package = await PackageService(db).renew(
            user_id,
            wallet_address=request.wallet_address,
            transaction_id=request.transaction_id,
            stripe_subscription_id=request.stripe_subscription_id,
        )
    except PackageError as e:
        return _package_error("/packages/renew", user_id, e)

    log_endpoint_event("/packages/renew", user_id=user_id)
    return success_response(data=user_package.to_dict(), message="Subscription renewed successfully")


@packages_router.post("/packages/cancel")
async def cancel_subscription(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Stop auto-renewal. The subscription stays usable until its paid coverage ends."""
    user_id = current_user["user_id"]
    try:
        user_package = await PackageService(db).cancel(user_id)
    except PackageError as e:
        return _package_error("/packages/cancel", user_id, e)

    log_endpoint_event("/packages/cancel", user_id=user_id)
    return success_response(data=user_package.to_dict(), message="Subscription cancelled")
