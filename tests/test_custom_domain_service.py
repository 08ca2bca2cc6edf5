"""Tests for the custom domain lifecycle: set, verify, remove, lapse."""
from datetime import datetime, timedelta, timezone

import pytest

from bublr.models.user import DomainStatus
from bublr.schemas.subscription import BillingStatus, SubscriptionStatus
from bublr.services.custom_domains import CustomDomainService, DomainErrorCode
from bublr.services.tenant_resolver import ResolutionOutcome, TenantResolver

APP_DOMAIN = "bublr.life"


@pytest.fixture
def service(store, fake_billing, fake_dns):
    return CustomDomainService(
        store, fake_billing, fake_dns, APP_DOMAIN, dns_timeout=0.5, billing_timeout=0.5
    )


@pytest.fixture
def resolver(store):
    return TenantResolver(store, APP_DOMAIN)


def _point_at_platform(fake_dns, domain):
    fake_dns.records[(domain, "CNAME")] = ["cname.bublr.life"]


# ── set_domain ──

async def test_set_domain_saves_pending(service, subscriber):
    result = await service.set_domain(subscriber.id, "https://Blog.Alice.com/")
    assert result.ok is True
    assert result.domain == "blog.alice.com"
    assert result.status == DomainStatus.PENDING
    assert result.message == "Domain saved. Please verify DNS settings."


async def test_set_domain_rejects_invalid_format(service, subscriber):
    result = await service.set_domain(subscriber.id, "blog.alice.com/posts")
    assert result.ok is False
    assert result.code == DomainErrorCode.INVALID


async def test_set_domain_requires_subscription(service, store):
    user = store.create_user("dave")
    result = await service.set_domain(user.id, "dave.example.com")
    assert result.ok is False
    assert result.code == DomainErrorCode.SUBSCRIPTION_REQUIRED
    assert store.get_user(user.id).custom_domain is None


async def test_set_same_domain_is_a_no_op(service, store, tenant):
    result = await service.set_domain(tenant.id, "BLOG.bob.dev")
    assert result.ok is True
    assert result.message == "Domain unchanged"
    # still active: re-saving does not reset verification
    assert store.get_user(tenant.id).domain_status == DomainStatus.ACTIVE


async def test_set_domain_claimed_by_other_user_conflicts(service, subscriber, tenant):
    result = await service.set_domain(subscriber.id, "blog.bob.dev")
    assert result.ok is False
    assert result.code == DomainErrorCode.CONFLICT
    assert result.message == "This domain is already registered to another user"


async def test_changing_an_active_domain_resets_to_pending(service, store, tenant):
    result = await service.set_domain(tenant.id, "new.bob.dev")
    assert result.ok is True
    user = store.get_user(tenant.id)
    assert user.custom_domain.domain == "new.bob.dev"
    assert user.domain_status == DomainStatus.PENDING
    assert store.get_user_by_domain("blog.bob.dev") is None


async def test_unknown_user(service):
    result = await service.set_domain("missing-user", "x.example.com")
    assert result.code == DomainErrorCode.USER_NOT_FOUND
    assert (await service.get_status("missing-user")).code == DomainErrorCode.USER_NOT_FOUND


# ── verify_domain ──

async def test_verify_without_domain(service, subscriber):
    result = await service.verify_domain(subscriber.id)
    assert result.ok is False
    assert result.code == DomainErrorCode.NO_DOMAIN


async def test_verify_activates_domain(service, store, resolver, subscriber, fake_dns):
    await service.set_domain(subscriber.id, "blog.alice.com")
    _point_at_platform(fake_dns, "blog.alice.com")

    result = await service.verify_domain(subscriber.id)
    assert result.ok is True
    assert result.status == DomainStatus.ACTIVE
    assert result.verified_at is not None
    assert result.verification.record_type == "CNAME"
    assert result.message == "Domain verified successfully!"

    user = store.get_user(subscriber.id)
    assert user.billing_customer_id == "cus_test"
    resolution = await resolver.resolve_tenant("blog.alice.com")
    assert resolution.outcome == ResolutionOutcome.RESOLVED
    assert resolution.user.name == "alice"


async def test_failed_dns_keeps_pending_domain(service, store, resolver, subscriber):
    await service.set_domain(subscriber.id, "blog.alice.com")

    result = await service.verify_domain(subscriber.id)
    assert result.ok is False
    assert result.code == DomainErrorCode.DNS_FAILED
    assert result.domain == "blog.alice.com"
    assert result.status == DomainStatus.PENDING
    assert result.message.startswith("No valid DNS records found")

    assert store.get_user(subscriber.id).custom_domain.domain == "blog.alice.com"
    assert (await resolver.resolve_tenant("blog.alice.com")).outcome == ResolutionOutcome.INACTIVE


async def test_inactive_billing_blocks_verification(service, store, subscriber, fake_billing, fake_dns):
    await service.set_domain(subscriber.id, "blog.alice.com")
    _point_at_platform(fake_dns, "blog.alice.com")
    fake_billing.status = BillingStatus(active=False, status=SubscriptionStatus.CANCELLED)

    result = await service.verify_domain(subscriber.id)
    assert result.ok is False
    assert result.code == DomainErrorCode.SUBSCRIPTION_REQUIRED
    assert store.get_user(subscriber.id).domain_status == DomainStatus.PENDING
    # billing is checked before DNS
    assert fake_dns.calls == []


async def test_billing_error_fails_closed(service, store, subscriber, fake_billing, fake_dns):
    await service.set_domain(subscriber.id, "blog.alice.com")
    _point_at_platform(fake_dns, "blog.alice.com")
    fake_billing.error = ConnectionError("billing API down")

    result = await service.verify_domain(subscriber.id)
    assert result.ok is False
    assert result.code == DomainErrorCode.SUBSCRIPTION_REQUIRED
    assert store.get_user(subscriber.id).domain_status == DomainStatus.PENDING


# ── remove_domain ──

async def test_remove_domain(service, store, resolver, tenant):
    result = await service.remove_domain(tenant.id)
    assert result.ok is True
    assert result.domain is None
    assert result.status == DomainStatus.UNSET

    assert store.get_user(tenant.id).custom_domain is None
    assert (await resolver.resolve_tenant("blog.bob.dev")).outcome == ResolutionOutcome.NOT_FOUND


async def test_removed_domain_can_be_claimed_by_someone_else(service, subscriber, tenant):
    await service.remove_domain(tenant.id)
    result = await service.set_domain(subscriber.id, "blog.bob.dev")
    assert result.ok is True


# ── subscription changes ──

async def test_lapsed_subscription_deactivates_domain(service, resolver, tenant):
    user = await service.apply_subscription_status(tenant.id, SubscriptionStatus.CANCELLED)
    assert user.subscription_status == SubscriptionStatus.CANCELLED
    assert user.domain_status == DomainStatus.INACTIVE
    assert (await resolver.resolve_tenant("blog.bob.dev")).outcome == ResolutionOutcome.INACTIVE


async def test_past_due_with_grace_keeps_domain_active(service, resolver, tenant):
    grace = datetime.now(timezone.utc) + timedelta(days=3)
    user = await service.apply_subscription_status(
        tenant.id, SubscriptionStatus.PAST_DUE, grace_period_ends_at=grace
    )
    assert user.domain_status == DomainStatus.ACTIVE
    assert (await resolver.resolve_tenant("blog.bob.dev")).outcome == ResolutionOutcome.RESOLVED


async def test_refresh_applies_provider_status(service, tenant, fake_billing):
    fake_billing.status = BillingStatus(
        active=False, status=SubscriptionStatus.EXPIRED, customer_id="cus_bob"
    )
    user = await service.refresh_subscription(tenant.id)
    assert fake_billing.calls == ["sub_bob"]
    assert user.subscription_status == SubscriptionStatus.EXPIRED
    assert user.billing_customer_id == "cus_bob"
    assert user.domain_status == DomainStatus.INACTIVE


async def test_refresh_on_hold_gets_grace_period(service, tenant, fake_billing):
    fake_billing.status = BillingStatus(active=False, status=SubscriptionStatus.ON_HOLD)
    user = await service.refresh_subscription(tenant.id, grace_days=3)
    assert user.grace_period_ends_at is not None
    assert user.domain_status == DomainStatus.ACTIVE


async def test_refresh_keeps_state_when_provider_unreachable(service, tenant, fake_billing):
    fake_billing.error = ConnectionError("timeout")
    user = await service.refresh_subscription(tenant.id)
    assert user.subscription_status == SubscriptionStatus.ACTIVE
    assert user.domain_status == DomainStatus.ACTIVE


def test_from_settings(config, store, fake_billing, fake_dns):
    service = CustomDomainService.from_settings(config, store, fake_billing, fake_dns)
    assert service.app_domain == "bublr.life"
    assert service.billing_timeout == config.BILLING_TIMEOUT
