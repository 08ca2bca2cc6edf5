"""
Custom domain lifecycle.

    unset ──set──▶ pending ──verify (DNS ✓ and billing ✓)──▶ active
                     ▲                                          │
                     └──────────── set (new domain) ────────────┤
                                                                ▼
    any ──remove──▶ unset                 inactive ◀── subscription lapses

A failed verification never clears the pending domain, so the user can
retry without re-entering it. Domain uniqueness is enforced by the
store's atomic claim.
"""

import enum
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel

from bublr.errors import DomainConflictError, UpstreamError, UserNotFound, call_upstream
from bublr.metrics import DOMAIN_VERIFICATIONS
from bublr.models.user import DomainStatus
from bublr.schemas.records import UserRecord
from bublr.schemas.subscription import BillingStatus, SubscriptionStatus
from bublr.services.billing import BillingStatusProvider, is_subscription_servable
from bublr.services.domains import DNSResolver, DomainVerification, validate_domain_format, verify_dns

logger = logging.getLogger("bublr.custom_domain")


class DomainErrorCode(str, enum.Enum):
    INVALID = "invalid"
    CONFLICT = "conflict"
    SUBSCRIPTION_REQUIRED = "subscription_required"
    NO_DOMAIN = "no_domain"
    DNS_FAILED = "dns_failed"
    USER_NOT_FOUND = "user_not_found"
    UPSTREAM = "upstream"


class DomainActionResult(BaseModel):
    ok: bool
    domain: Optional[str] = None
    status: DomainStatus = DomainStatus.UNSET
    message: str = ""
    code: Optional[DomainErrorCode] = None
    verification: Optional[DomainVerification] = None
    verified_at: Optional[datetime] = None


def _fail(code: DomainErrorCode, message: str, user: Optional[UserRecord] = None, **extra) -> DomainActionResult:
    domain = user.custom_domain.domain if user and user.custom_domain else None
    status = user.domain_status if user else DomainStatus.UNSET
    return DomainActionResult(ok=False, code=code, message=message, domain=domain, status=status, **extra)


def _state(user: UserRecord, message: str = "", **extra) -> DomainActionResult:
    cd = user.custom_domain
    return DomainActionResult(
        ok=True,
        domain=cd.domain if cd else None,
        status=user.domain_status,
        verified_at=cd.verified_at if cd else None,
        message=message,
        **extra,
    )


class CustomDomainService:
    def __init__(
        self,
        store,
        billing: BillingStatusProvider,
        dns_resolver: DNSResolver,
        app_domain: str,
        store_timeout: float = 5.0,
        dns_timeout: float = 5.0,
        billing_timeout: float = 10.0,
    ):
        self.store = store
        self.billing = billing
        self.dns_resolver = dns_resolver
        self.app_domain = app_domain
        self.store_timeout = store_timeout
        self.dns_timeout = dns_timeout
        self.billing_timeout = billing_timeout

    @classmethod
    def from_settings(cls, config, store, billing, dns_resolver) -> "CustomDomainService":
        return cls(
            store,
            billing,
            dns_resolver,
            app_domain=config.APP_DOMAIN,
            store_timeout=config.STORE_TIMEOUT,
            dns_timeout=config.DNS_TIMEOUT,
            billing_timeout=config.BILLING_TIMEOUT,
        )

    # ── collaborator calls ──

    async def _store(self, operation: str, *args):
        return await call_upstream(
            f"store.{operation}", getattr(self.store, operation), *args, timeout=self.store_timeout
        )

    async def _load_user(self, user_id: str) -> UserRecord:
        user = await self._store("get_user", user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    async def _billing_status(self, user: UserRecord) -> BillingStatus:
        """Ask the provider; any failure counts as not paid (fail closed)."""
        try:
            return await call_upstream(
                "billing.fetch_status",
                self.billing.fetch_status,
                user.subscription_id,
                timeout=self.billing_timeout,
            )
        except UpstreamError as e:
            logger.warning("Billing status check failed for user %s: %s", user.id, e)
            return BillingStatus(active=False, status=SubscriptionStatus.UNKNOWN)

    # ── operations ──

    async def get_status(self, user_id: str) -> DomainActionResult:
        try:
            user = await self._load_user(user_id)
        except UserNotFound:
            return _fail(DomainErrorCode.USER_NOT_FOUND, "User not found")
        except UpstreamError:
            return _fail(DomainErrorCode.UPSTREAM, "Could not load custom domain settings")
        return _state(user)

    async def set_domain(self, user_id: str, raw_domain) -> DomainActionResult:
        validation = validate_domain_format(raw_domain, self.app_domain)
        if not validation.valid:
            return _fail(DomainErrorCode.INVALID, validation.reason)
        domain = validation.domain

        try:
            user = await self._load_user(user_id)
            if not is_subscription_servable(user.subscription_status, user.grace_period_ends_at):
                return _fail(
                    DomainErrorCode.SUBSCRIPTION_REQUIRED,
                    "You need an active subscription to use custom domains",
                    user,
                )

            if user.custom_domain and user.custom_domain.domain == domain:
                return _state(user, "Domain unchanged")

            user = await self._store("claim_custom_domain", user_id, domain)
        except UserNotFound:
            return _fail(DomainErrorCode.USER_NOT_FOUND, "User not found")
        except DomainConflictError:
            logger.info("Domain %s requested by %s is already claimed", domain, user_id)
            return _fail(
                DomainErrorCode.CONFLICT,
                "This domain is already registered to another user",
            )
        except UpstreamError:
            return _fail(DomainErrorCode.UPSTREAM, "Failed to set domain")

        logger.info("Custom domain %s saved for user %s (pending)", domain, user_id)
        return _state(user, "Domain saved. Please verify DNS settings.")

    async def verify_domain(self, user_id: str) -> DomainActionResult:
        try:
            user = await self._load_user(user_id)
        except UserNotFound:
            return _fail(DomainErrorCode.USER_NOT_FOUND, "User not found")
        except UpstreamError:
            return _fail(DomainErrorCode.UPSTREAM, "Failed to verify domain")

        if user.custom_domain is None:
            return _fail(DomainErrorCode.NO_DOMAIN, "Please set a custom domain first", user)
        domain = user.custom_domain.domain

        billing = await self._billing_status(user)
        if not billing.active and not is_subscription_servable(
            billing.status, user.grace_period_ends_at
        ):
            DOMAIN_VERIFICATIONS.labels(result="billing_failed").inc()
            return _fail(
                DomainErrorCode.SUBSCRIPTION_REQUIRED,
                "Your subscription must be active to verify a domain",
                user,
            )

        verification = await verify_dns(domain, self.app_domain, self.dns_resolver, self.dns_timeout)
        if not verification.verified:
            DOMAIN_VERIFICATIONS.labels(result="dns_failed").inc()
            logger.info("DNS verification failed for %s: %s", domain, verification.error)
            return _fail(DomainErrorCode.DNS_FAILED, verification.error, user, verification=verification)

        verified_at = datetime.now(timezone.utc)
        try:
            activated = await self._store("activate_custom_domain", user_id, domain, verified_at)
            if billing.customer_id and not user.billing_customer_id:
                await self._store("update_user", user_id, {"billing_customer_id": billing.customer_id})
            user = await self._load_user(user_id)
        except (UpstreamError, UserNotFound):
            return _fail(DomainErrorCode.UPSTREAM, "Failed to verify domain", user)

        if not activated:
            # Domain was changed or removed while DNS was being checked
            return _fail(DomainErrorCode.NO_DOMAIN, "The domain changed during verification; try again", user)

        DOMAIN_VERIFICATIONS.labels(result="verified").inc()
        logger.info("Domain verified: %s (%s record)", domain, verification.record_type)
        return _state(user, "Domain verified successfully!", verification=verification)

    async def remove_domain(self, user_id: str) -> DomainActionResult:
        try:
            await self._load_user(user_id)
            user = await self._store(
                "update_user",
                user_id,
                {
                    "custom_domain": None,
                    "custom_domain_status": DomainStatus.UNSET.value,
                    "custom_domain_verified_at": None,
                },
            )
        except UserNotFound:
            return _fail(DomainErrorCode.USER_NOT_FOUND, "User not found")
        except UpstreamError:
            return _fail(DomainErrorCode.UPSTREAM, "Failed to remove domain")

        logger.info("Custom domain removed for user %s", user_id)
        return _state(user, "Custom domain removed successfully")

    async def apply_subscription_status(
        self,
        user_id: str,
        status: SubscriptionStatus,
        customer_id: Optional[str] = None,
        grace_period_ends_at: Optional[datetime] = None,
    ) -> UserRecord:
        """Store a new subscription status; a lapse deactivates an active domain."""
        status = SubscriptionStatus(status)
        user = await self._load_user(user_id)

        update = {
            "subscription_status": status.value,
            "grace_period_ends_at": grace_period_ends_at,
        }
        if customer_id:
            update["billing_customer_id"] = customer_id

        if user.domain_status == DomainStatus.ACTIVE and not is_subscription_servable(
            status, grace_period_ends_at
        ):
            update["custom_domain_status"] = DomainStatus.INACTIVE.value
            logger.info(
                "Subscription for %s is %s; custom domain %s deactivated",
                user_id,
                status.value,
                user.custom_domain.domain,
            )

        return await self._store("update_user", user_id, update)

    async def refresh_subscription(self, user_id: str, grace_days: int = 0) -> UserRecord:
        """Re-read the subscription from the billing provider and apply it."""
        user = await self._load_user(user_id)
        billing = await self._billing_status(user)
        if billing.status == SubscriptionStatus.UNKNOWN and user.subscription_id:
            # Provider unreachable: keep what we have rather than guessing
            return user

        grace_end = None
        if billing.status in (SubscriptionStatus.ON_HOLD, SubscriptionStatus.PAST_DUE):
            grace_end = user.grace_period_ends_at or _grace_from_now(grace_days)
        return await self.apply_subscription_status(
            user_id, billing.status, billing.customer_id, grace_end
        )


def _grace_from_now(days: int) -> Optional[datetime]:
    if days <= 0:
        return None
    return datetime.now(timezone.utc) + timedelta(days=days)
