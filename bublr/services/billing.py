"""
Billing status providers.

The tenant resolver and the custom-domain service only ever see
``BillingStatusProvider``; each payment vendor gets one adapter that maps
its payload onto ``BillingStatus``. Webhook ingestion is not handled here.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from bublr.config import Settings
from bublr.errors import ConfigurationError
from bublr.schemas.records import to_utc
from bublr.schemas.subscription import (
    GRACE_STATUSES,
    PAYING_STATUSES,
    BillingStatus,
    SubscriptionStatus,
)

logger = logging.getLogger("bublr.billing")


def is_subscription_servable(
    status: SubscriptionStatus,
    grace_period_ends_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Paid-up, or on hold / past due inside an explicit grace period."""
    status = SubscriptionStatus(status)
    if status in PAYING_STATUSES:
        return True
    if status in GRACE_STATUSES and grace_period_ends_at is not None:
        now = now or datetime.now(timezone.utc)
        return now < to_utc(grace_period_ends_at)
    return False


class BillingStatusProvider(Protocol):
    async def fetch_status(self, subscription_id: Optional[str]) -> BillingStatus: ...

    async def aclose(self) -> None: ...


def _missing() -> BillingStatus:
    return BillingStatus(active=False, status=SubscriptionStatus.NONE)


class StoredBillingStatusProvider:
    """Reads the status last written onto the user record (no vendor call)."""

    def __init__(self, store):
        self._store = store

    async def fetch_status(self, subscription_id: Optional[str]) -> BillingStatus:
        if not subscription_id:
            return _missing()
        user = await asyncio.to_thread(self._store.get_user_by_subscription_id, subscription_id)
        if user is None:
            return _missing()
        return BillingStatus(
            active=is_subscription_servable(user.subscription_status, user.grace_period_ends_at),
            status=user.subscription_status,
            customer_id=user.billing_customer_id,
            current_period_end=user.grace_period_ends_at,
        )

    async def aclose(self) -> None:
        return None


class _HTTPBillingProvider:
    """Shared httpx plumbing for vendor adapters."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        headers: Dict[str, str],
        timeout: float,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout
        )
        if client is not None:
            self._client.headers.update(headers)

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, path: str) -> Optional[Dict[str, Any]]:
        response = await self._client.get(path)
        if response.status_code == 404:
            return None
        if 400 <= response.status_code < 500:
            logger.warning(
                "%s rejected %s: %d %s", self.name, path, response.status_code, response.text[:200]
            )
            return {}
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class DodoBillingStatusProvider(_HTTPBillingProvider):
    LIVE_BASE_URL = "https://api.dodopayments.com"
    TEST_BASE_URL = "https://api.sandbox.dodopayments.com"
    name = "dodo"

    def __init__(
        self,
        api_key: str,
        environment: str = "live",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ConfigurationError("DODO_PAYMENTS_API_KEY is not configured")
        base_url = self.TEST_BASE_URL if "test" in environment.lower() else self.LIVE_BASE_URL
        super().__init__(
            base_url,
            {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            timeout,
            client,
        )

    async def fetch_status(self, subscription_id: Optional[str]) -> BillingStatus:
        if not subscription_id:
            return _missing()
        payload = await self._get(f"/subscriptions/{subscription_id}")
        if payload is None:
            return _missing()

        status = SubscriptionStatus(payload.get("status") or payload.get("state") or "unknown")
        customer = payload.get("customer") or {}
        customer_id = (
            payload.get("customer_id")
            or payload.get("customerId")
            or customer.get("customer_id")
        )
        return BillingStatus(
            active=status in PAYING_STATUSES,
            status=status,
            customer_id=customer_id,
            current_period_end=to_utc(payload.get("next_billing_date")),
        )


class LemonSqueezyBillingStatusProvider(_HTTPBillingProvider):
    BASE_URL = "https://api.lemonsqueezy.com/v1"
    name = "lemonsqueezy"

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ConfigurationError("LEMON_SQUEEZY_API_KEY is not configured")
        super().__init__(
            self.BASE_URL,
            {
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/vnd.api+json",
            },
            timeout,
            client,
        )

    async def fetch_status(self, subscription_id: Optional[str]) -> BillingStatus:
        if not subscription_id:
            return _missing()
        payload = await self._get(f"/subscriptions/{subscription_id}")
        if payload is None:
            return _missing()

        attributes = (payload.get("data") or {}).get("attributes") or {}
        status = SubscriptionStatus(attributes.get("status") or "unknown")
        customer_id = attributes.get("customer_id")
        return BillingStatus(
            active=status in PAYING_STATUSES,
            status=status,
            customer_id=str(customer_id) if customer_id is not None else None,
            current_period_end=to_utc(attributes.get("renews_at") or attributes.get("ends_at")),
        )


def get_billing_provider(config: Settings, store) -> BillingStatusProvider:
    """Build the provider selected by ``BILLING_PROVIDER`` (startup only)."""
    name = config.BILLING_PROVIDER.lower()
    if name == "stored":
        return StoredBillingStatusProvider(store)
    if name == "dodo":
        return DodoBillingStatusProvider(
            config.DODO_PAYMENTS_API_KEY,
            environment=config.DODO_PAYMENTS_ENVIRONMENT,
            timeout=config.BILLING_TIMEOUT,
        )
    if name == "lemonsqueezy":
        return LemonSqueezyBillingStatusProvider(
            config.LEMON_SQUEEZY_API_KEY, timeout=config.BILLING_TIMEOUT
        )
    raise ConfigurationError(f"Unknown BILLING_PROVIDER '{config.BILLING_PROVIDER}'")
