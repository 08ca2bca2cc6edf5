"""Subscription status for the signed-in user."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from bublr.api import deps
from bublr.config import Settings
from bublr.errors import UpstreamError, UserNotFound, call_upstream
from bublr.models.user import DomainStatus
from bublr.schemas.records import UserRecord
from bublr.schemas.subscription import GRACE_STATUSES, SubscriptionStatusOut
from bublr.services.billing import is_subscription_servable
from bublr.services.custom_domains import CustomDomainService

router = APIRouter()
logger = logging.getLogger("bublr.billing")


def _status_out(user: UserRecord) -> SubscriptionStatusOut:
    cd = user.custom_domain
    return SubscriptionStatusOut(
        subscription_status=user.subscription_status,
        subscription_id=user.subscription_id,
        is_active=is_subscription_servable(user.subscription_status, user.grace_period_ends_at),
        is_past_due=user.subscription_status in GRACE_STATUSES,
        grace_period_ends_at=user.grace_period_ends_at,
        custom_domain=cd.domain if cd else None,
        custom_domain_status=user.domain_status.value,
        custom_domain_active=user.domain_status == DomainStatus.ACTIVE,
        domain_verified_at=cd.verified_at if cd else None,
    )


@router.get("/status", response_model=SubscriptionStatusOut)
async def subscription_status(
    user_id: str = Depends(deps.get_current_user_id),
    store=Depends(deps.get_store),
    config: Settings = Depends(deps.get_settings),
) -> Any:
    try:
        user = await call_upstream(
            "store.get_user", store.get_user, user_id, timeout=config.STORE_TIMEOUT
        )
    except UpstreamError as e:
        logger.error("Subscription status lookup failed for %s: %s", user_id, e)
        raise HTTPException(status_code=503, detail="Subscription status is temporarily unavailable")
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _status_out(user)


@router.post("/refresh", response_model=SubscriptionStatusOut)
async def refresh_subscription(
    user_id: str = Depends(deps.get_current_user_id),
    service: CustomDomainService = Depends(deps.get_domain_service),
    config: Settings = Depends(deps.get_settings),
) -> Any:
    """Re-read the subscription from the billing provider."""
    try:
        user = await service.refresh_subscription(user_id, config.SUBSCRIPTION_GRACE_DAYS)
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except UpstreamError as e:
        logger.error("Subscription refresh failed for %s: %s", user_id, e)
        raise HTTPException(status_code=503, detail="Billing status is temporarily unavailable")
    return _status_out(user)
