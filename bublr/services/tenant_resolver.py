"""
Tenant resolution from the inbound Host header.

A request arriving on a user's custom domain is served as that user's
profile: ``/`` becomes ``/{name}``, ``/{slug}`` becomes ``/{name}/{slug}``.
Resolution fails closed. A domain whose subscription has lapsed, or
whose lookup errors out, is treated exactly like an unknown host.
"""

import enum
import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence, Tuple

from pydantic import BaseModel

from bublr.config import LOCAL_HOSTS, Settings
from bublr.errors import ConfigurationError, DomainNotFound, UpstreamError, call_upstream
from bublr.metrics import TENANT_RESOLUTIONS
from bublr.schemas.records import UserRecord
from bublr.services.billing import is_subscription_servable

logger = logging.getLogger("bublr.domain")

DEFAULT_EXCLUDED_PREFIXES = ("/api", "/_next", "/static", "/favicon.ico")


class ResolutionOutcome(str, enum.Enum):
    DEFAULT_HOST = "default_host"      # one of our own hosts, no tenant
    RESOLVED = "resolved"              # servable tenant
    INACTIVE = "inactive"              # tenant found, not servable
    NOT_FOUND = "not_found"            # DomainNotFound
    UPSTREAM_ERROR = "upstream_error"  # store failed, fail closed


class TenantResolution(BaseModel):
    outcome: ResolutionOutcome
    host: str
    user: Optional[UserRecord] = None
    active: bool = False

    @property
    def servable(self) -> bool:
        return self.outcome == ResolutionOutcome.RESOLVED

    def require_user(self) -> UserRecord:
        """The servable tenant, or ``DomainNotFound``."""
        if not self.servable:
            raise DomainNotFound(self.host)
        return self.user


def _split_port(host: str) -> Tuple[str, Optional[str]]:
    if host.startswith("["):
        # [::1]:3000
        end = host.find("]")
        if end != -1 and host[end + 1:end + 2] == ":" and host[end + 2:].isdigit():
            return host[:end + 1], host[end + 2:]
        return host, None
    if host.count(":") == 1:
        name, port = host.split(":")
        if port.isdigit():
            return name, port
    return host, None


def is_default_host(hostname: str, app_domain: str, default_hosts: Iterable[str] = ()) -> bool:
    """True for our own hosts: empty, localhost variants, the app domain and its subdomains."""
    if not hostname:
        return True
    if hostname in LOCAL_HOSTS or hostname.endswith(".localhost"):
        return True
    app_domain = app_domain.lower()
    if hostname == app_domain or hostname.endswith("." + app_domain):
        return True
    return hostname in set(default_hosts)


def normalize_host(host: Optional[str], app_domain: str, default_hosts: Iterable[str] = ()) -> str:
    """Lower-case and trim a Host header value.

    The port is dropped only when the host is one of our default hosts,
    so ``localhost:3000`` and ``localhost`` compare equal. Idempotent.
    """
    # "localhost:3000." must split the same way as "localhost:3000"
    value = (host or "").strip().lower().rstrip(".")
    hostname, port = _split_port(value)
    hostname = hostname.rstrip(".")
    if port is not None and is_default_host(hostname, app_domain, default_hosts):
        return hostname
    return f"{hostname}:{port}" if port is not None else hostname


def is_domain_servable(user: UserRecord, now: Optional[datetime] = None) -> bool:
    """Serve a custom domain only with a servable subscription AND an active domain."""
    if user.custom_domain is None or not user.custom_domain.active:
        return False
    return is_subscription_servable(user.subscription_status, user.grace_period_ends_at, now)


class TenantResolver:
    def __init__(
        self,
        store,
        app_domain: str,
        default_hosts: Sequence[str] = (),
        excluded_prefixes: Sequence[str] = DEFAULT_EXCLUDED_PREFIXES,
        store_timeout: float = 5.0,
    ):
        if not app_domain:
            raise ConfigurationError("APP_DOMAIN must be set for custom domain resolution")
        self.store = store
        self.app_domain = app_domain.strip().lower()
        self.default_hosts = tuple(h.strip().lower() for h in default_hosts if h.strip())
        self.excluded_prefixes = tuple(excluded_prefixes)
        self.store_timeout = store_timeout

    @classmethod
    def from_settings(cls, config: Settings, store) -> "TenantResolver":
        return cls(
            store,
            app_domain=config.APP_DOMAIN,
            default_hosts=config.default_hosts,
            excluded_prefixes=config.excluded_prefixes,
            store_timeout=config.STORE_TIMEOUT,
        )

    def normalize_host(self, host: Optional[str]) -> str:
        return normalize_host(host, self.app_domain, self.default_hosts)

    def is_default_host(self, host: Optional[str]) -> bool:
        return is_default_host(self.normalize_host(host), self.app_domain, self.default_hosts)

    def is_excluded_path(self, path: str) -> bool:
        for prefix in self.excluded_prefixes:
            if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
                return True
        return False

    async def resolve_tenant(
        self, host: Optional[str], now: Optional[datetime] = None
    ) -> TenantResolution:
        """Map a Host header to a tenant. Never raises for bad or unknown hosts."""
        normalized = self.normalize_host(host)
        if is_default_host(normalized, self.app_domain, self.default_hosts):
            return self._record(TenantResolution(outcome=ResolutionOutcome.DEFAULT_HOST, host=normalized))

        try:
            user = await call_upstream(
                "store.get_user_by_domain",
                self.store.get_user_by_domain,
                normalized,
                timeout=self.store_timeout,
            )
        except UpstreamError as e:
            logger.warning("Custom domain resolution failed for %s: %s", normalized, e)
            return self._record(TenantResolution(outcome=ResolutionOutcome.UPSTREAM_ERROR, host=normalized))

        if user is None:
            logger.debug("No user owns domain %s", normalized)
            return self._record(TenantResolution(outcome=ResolutionOutcome.NOT_FOUND, host=normalized))

        if not is_domain_servable(user, now):
            logger.info(
                "Domain %s belongs to %s but is not servable (domain=%s, subscription=%s)",
                normalized,
                user.name,
                user.domain_status.value,
                user.subscription_status.value,
            )
            return self._record(
                TenantResolution(outcome=ResolutionOutcome.INACTIVE, host=normalized, user=user)
            )

        logger.debug("Resolved custom domain %s → user %s", normalized, user.name)
        return self._record(
            TenantResolution(outcome=ResolutionOutcome.RESOLVED, host=normalized, user=user, active=True)
        )

    def rewrite_for_tenant(self, user: UserRecord, original_path: str) -> str:
        """Profile path for a tenant request; excluded prefixes pass through."""
        if self.is_excluded_path(original_path):
            return original_path
        if original_path in ("", "/"):
            return f"/{user.name}"
        if not original_path.startswith("/"):
            original_path = "/" + original_path
        return f"/{user.name}{original_path}"

    @staticmethod
    def _record(resolution: TenantResolution) -> TenantResolution:
        TENANT_RESOLUTIONS.labels(outcome=resolution.outcome.value).inc()
        return resolution
