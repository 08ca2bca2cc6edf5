"""
Custom domain format validation and DNS verification.

``validate_domain_format`` is pure: user-input problems come back as a
``DomainValidation`` with a reason, never as an exception.
``verify_dns`` checks that a domain points at the platform: an A record
is accepted as-is, a CNAME must name the canonical domain.
"""

import logging
import re
from typing import List, Optional, Protocol

import dns.asyncresolver
import dns.resolver
from pydantic import BaseModel, Field

from bublr.config import settings
from bublr.errors import UpstreamError, call_upstream

logger = logging.getLogger("bublr.dns")

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")
_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
_MAX_DOMAIN_LENGTH = 253


class DomainValidation(BaseModel):
    valid: bool
    domain: Optional[str] = None
    reason: Optional[str] = None


class DomainVerification(BaseModel):
    domain: str
    target_domain: str
    verified: bool
    record_type: Optional[str] = None
    records: List[str] = Field(default_factory=list)
    error: Optional[str] = None


def _reject(reason: str) -> DomainValidation:
    return DomainValidation(valid=False, reason=reason)


def validate_domain_format(domain, app_domain: Optional[str] = None) -> DomainValidation:
    """Normalise and validate a user-supplied custom domain.

    Returns the lower-cased, scheme-free domain or the reason it was
    rejected. ``app_domain`` defaults to the configured canonical domain.
    """
    if app_domain is None:
        app_domain = settings.APP_DOMAIN
    if not domain or not isinstance(domain, str):
        return _reject("Domain is required")

    clean = domain.strip().lower()
    clean = _SCHEME_RE.sub("", clean)
    # A single trailing slash after the host is harmless ("example.com/")
    if clean.endswith("/") and clean.count("/") == 1:
        clean = clean[:-1]

    if not clean:
        return _reject("Domain is required")
    if "/" in clean or "\\" in clean:
        return _reject(
            "Domain cannot contain paths. Use only the domain name (e.g., blog.example.com)"
        )
    if any(ch.isspace() for ch in clean):
        return _reject("Domain cannot contain spaces")
    if clean.endswith("."):
        clean = clean[:-1]
    if len(clean) > _MAX_DOMAIN_LENGTH:
        return _reject("Domain is too long")

    labels = clean.split(".")
    if any(not label for label in labels):
        return _reject("Invalid domain format. Labels between dots cannot be empty")
    if not all(_LABEL_RE.match(label) for label in labels):
        return _reject(
            "Invalid domain format. Use only letters, numbers, dots, and hyphens"
        )
    if len(labels) < 2:
        return _reject("Domain must have at least a name and TLD (e.g., example.com)")
    if len(labels[-1]) < 2:
        return _reject("Invalid TLD (top-level domain)")
    if clean == app_domain.strip().lower():
        return _reject("Cannot use the main app domain")

    return DomainValidation(valid=True, domain=clean)


# ═══════════════════════════════════════════
#  DNS collaborator
# ═══════════════════════════════════════════

class DNSResolver(Protocol):
    async def resolve(self, hostname: str, record_type: str) -> Optional[List[str]]:
        """Return record values, or None when the name has no such record."""
        ...


class DnsPythonResolver:
    """DNS collaborator backed by dnspython's asyncio resolver."""

    def __init__(self, timeout: float = 5.0, nameservers: Optional[List[str]] = None):
        self._resolver = dns.asyncresolver.Resolver()
        self._resolver.lifetime = timeout
        if nameservers:
            self._resolver.nameservers = nameservers

    async def resolve(self, hostname: str, record_type: str) -> Optional[List[str]]:
        try:
            answers = await self._resolver.resolve(hostname, record_type)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return None
        if record_type == "CNAME":
            return [rdata.target.to_text().rstrip(".") for rdata in answers]
        return [rdata.to_text() for rdata in answers]


async def _lookup(
    resolver: DNSResolver, domain: str, record_type: str, timeout: float
) -> Optional[List[str]]:
    try:
        return await call_upstream(
            f"dns.resolve[{record_type}]",
            resolver.resolve,
            domain,
            record_type,
            timeout=timeout,
        )
    except UpstreamError as e:
        # One record type failing must not stop us trying the other
        logger.info("%s lookup for %s failed: %s", record_type, domain, e)
        return None


async def verify_dns(
    domain: str,
    target_domain: str,
    resolver: DNSResolver,
    timeout: float = 5.0,
) -> DomainVerification:
    """Check that ``domain`` resolves to the platform.

    An A record is tried first. Otherwise a CNAME is required to contain
    ``target_domain`` (case-insensitive) in at least one of its targets.
    """
    records = await _lookup(resolver, domain, "A", timeout)
    if records:
        logger.info("A record found for %s: %s", domain, records)
        return DomainVerification(
            domain=domain,
            target_domain=target_domain,
            verified=True,
            record_type="A",
            records=records,
        )

    logger.debug("A record not found for %s, trying CNAME", domain)
    records = await _lookup(resolver, domain, "CNAME", timeout)
    if records:
        target = target_domain.lower()
        if any(target in record.lower() for record in records):
            return DomainVerification(
                domain=domain,
                target_domain=target_domain,
                verified=True,
                record_type="CNAME",
                records=records,
            )
        return DomainVerification(
            domain=domain,
            target_domain=target_domain,
            verified=False,
            record_type="CNAME",
            records=records,
            error=(
                f"CNAME found but doesn't point to {target_domain}. "
                f"Points to: {', '.join(records)}"
            ),
        )

    return DomainVerification(
        domain=domain,
        target_domain=target_domain,
        verified=False,
        error=(
            "No valid DNS records found. Please add an A record or CNAME "
            f"pointing to {target_domain}"
        ),
    )
