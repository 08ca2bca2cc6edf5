"""Pytest configuration and fixtures."""
import asyncio
from typing import Dict, List, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt

from bublr.config import Settings
from bublr.db.session import Database
from bublr.schemas.subscription import BillingStatus, SubscriptionStatus
from bublr.store import SqlDocumentStore

# --- Constants ---
APP_DOMAIN = "bublr.life"
TEST_SECRET_KEY = "test-secret-key-for-bublr-unit-tests-only"


# --- Fake collaborators ---

class FakeDNSResolver:
    """In-memory DNS: ``records[(host, type)] -> values``; ``failing`` types raise."""

    def __init__(self, records: Optional[Dict[Tuple[str, str], List[str]]] = None):
        self.records = dict(records or {})
        self.failing: set = set()
        self.delay = 0.0
        self.calls: List[Tuple[str, str]] = []

    async def resolve(self, hostname: str, record_type: str) -> Optional[List[str]]:
        self.calls.append((hostname, record_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if record_type in self.failing:
            raise RuntimeError(f"SERVFAIL for {hostname}")
        return self.records.get((hostname, record_type))


class FakeBillingProvider:
    def __init__(self, status: Optional[BillingStatus] = None):
        self.status = status or BillingStatus(
            active=True, status=SubscriptionStatus.ACTIVE, customer_id="cus_test"
        )
        self.error: Optional[Exception] = None
        self.calls: List[Optional[str]] = []
        self.closed = False

    async def fetch_status(self, subscription_id: Optional[str]) -> BillingStatus:
        self.calls.append(subscription_id)
        if self.error is not None:
            raise self.error
        return self.status

    async def aclose(self) -> None:
        self.closed = True


def make_token(user_id: str, secret: str = TEST_SECRET_KEY) -> str:
    return jwt.encode({"sub": user_id}, secret, algorithm="HS256")


def auth_headers(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


# --- Per-test fixtures ---

@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(
        APP_ENV="development",
        APP_DOMAIN=APP_DOMAIN,
        DEFAULT_HOSTS="bublr.vercel.app",
        SECRET_KEY=TEST_SECRET_KEY,
        DATABASE_URL=f"sqlite:///{tmp_path / 'bublr_test.db'}",
        BILLING_PROVIDER="stored",
        STORE_TIMEOUT=2.0,
        DNS_TIMEOUT=0.5,
        BILLING_TIMEOUT=0.5,
    )


@pytest.fixture
def database(config):
    db = Database.from_settings(config)
    db.init()
    db.create_all()
    yield db
    db.close()


@pytest.fixture
def store(database) -> SqlDocumentStore:
    return SqlDocumentStore(database)


@pytest.fixture
def fake_dns() -> FakeDNSResolver:
    return FakeDNSResolver()


@pytest.fixture
def fake_billing() -> FakeBillingProvider:
    return FakeBillingProvider()


@pytest.fixture
def subscriber(store):
    """A paying user with no custom domain yet."""
    return store.create_user(
        "alice",
        display_name="Alice",
        subscription_id="sub_alice",
        subscription_status="active",
    )


@pytest.fixture
def tenant(store):
    """A paying user whose custom domain is verified and active."""
    return store.create_user(
        "bob",
        display_name="Bob",
        subscription_id="sub_bob",
        subscription_status="active",
        custom_domain="blog.bob.dev",
        custom_domain_status="active",
    )


@pytest.fixture
def app(config, database, fake_dns, fake_billing):
    from bublr.main import create_app

    return create_app(config, database=database, dns_resolver=fake_dns, billing=fake_billing)


@pytest.fixture
async def client(app):
    """
    Async HTTP client against the app, with its lifespan running so that
    the store and services are on ``app.state``.
    """
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url=f"http://{APP_DOMAIN}") as ac:
            yield ac
