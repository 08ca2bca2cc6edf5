"""
Typed user / post records and the one place loose documents are normalised.

User documents accumulated custom-domain and billing fields over several
iterations (``customDomain`` + ``customDomainActive`` + ``domainVerified``,
later ``customDomainStatus``, snake_case columns today). Everything that
reads a user goes through ``normalize_user_document`` so call sites never
probe for optional keys themselves.
"""

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, Field

from bublr.models.user import DomainStatus
from bublr.schemas.subscription import SubscriptionStatus


class CustomDomainRecord(BaseModel):
    domain: str
    status: DomainStatus = DomainStatus.PENDING
    verified_at: Optional[datetime] = None

    @property
    def active(self) -> bool:
        return self.status == DomainStatus.ACTIVE


class UserRecord(BaseModel):
    id: str
    name: str
    display_name: Optional[str] = None
    about: Optional[str] = None
    link: Optional[str] = None
    photo: Optional[str] = None
    posts: List[str] = Field(default_factory=list)
    custom_domain: Optional[CustomDomainRecord] = None
    subscription_id: Optional[str] = None
    subscription_status: SubscriptionStatus = SubscriptionStatus.NONE
    billing_customer_id: Optional[str] = None
    grace_period_ends_at: Optional[datetime] = None

    @property
    def domain_status(self) -> DomainStatus:
        if self.custom_domain is None:
            return DomainStatus.UNSET
        return self.custom_domain.status


class PostRecord(BaseModel):
    id: str
    author_id: str
    title: str = ""
    excerpt: str = ""
    content: str = ""
    slug: str
    published: bool = False
    last_edited: Optional[datetime] = None
    search_queries: List[str] = Field(default_factory=list)


def _first(doc: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = doc.get(key)
        if value is not None:
            return value
    return default


def to_utc(value: Any) -> Optional[datetime]:
    """Coerce stored timestamps (aware, naive, epoch millis) to aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        # fromisoformat() only accepts a "Z" suffix from Python 3.11
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _domain_status(doc: Mapping[str, Any], verified_at: Optional[datetime]) -> DomainStatus:
    raw = _first(doc, "custom_domain_status", "customDomainStatus")
    if raw is not None:
        try:
            return DomainStatus(raw)
        except ValueError:
            # Older documents stored the billing status here
            pass

    if _first(doc, "custom_domain_active", "customDomainActive", default=False):
        return DomainStatus.ACTIVE
    verified = _first(doc, "domain_verified", "domainVerified", default=verified_at is not None)
    if verified:
        return DomainStatus.INACTIVE
    return DomainStatus.PENDING


def normalize_user_document(doc: Mapping[str, Any]) -> UserRecord:
    """Build a ``UserRecord`` from any generation of user document."""
    domain = _first(doc, "custom_domain", "customDomain")
    custom_domain = None
    if isinstance(domain, str) and domain.strip():
        verified_at = to_utc(
            _first(doc, "custom_domain_verified_at", "domainVerifiedAt", "customDomainLastVerifiedAt")
        )
        status = _domain_status(doc, verified_at)
        if status == DomainStatus.UNSET:
            status = DomainStatus.PENDING
        custom_domain = CustomDomainRecord(
            domain=domain.strip().lower(),
            status=status,
            verified_at=verified_at,
        )

    posts = _first(doc, "posts", default=[])
    post_ids = [p if isinstance(p, str) else p["id"] for p in posts]

    return UserRecord(
        id=str(doc["id"]),
        name=doc["name"],
        display_name=_first(doc, "display_name", "displayName"),
        about=_first(doc, "about", "bio"),
        link=_first(doc, "link"),
        photo=_first(doc, "photo"),
        posts=post_ids,
        custom_domain=custom_domain,
        subscription_id=_first(doc, "subscription_id", "subscriptionId", "customDomainSubscriptionId"),
        subscription_status=SubscriptionStatus(
            _first(doc, "subscription_status", "subscriptionStatus", default="none")
        ),
        billing_customer_id=_first(doc, "billing_customer_id", "dodoCustomerId", "customerId"),
        grace_period_ends_at=to_utc(_first(doc, "grace_period_ends_at", "gracePeriodEndsAt")),
    )


def normalize_post_document(doc: Mapping[str, Any]) -> PostRecord:
    return PostRecord(
        id=str(doc["id"]),
        author_id=str(_first(doc, "author_id", "author")),
        title=_first(doc, "title", default=""),
        excerpt=_first(doc, "excerpt", default=""),
        content=_first(doc, "content", default=""),
        slug=_first(doc, "slug", default=str(doc["id"])),
        published=bool(_first(doc, "published", default=False)),
        last_edited=to_utc(_first(doc, "last_edited", "lastEdited")),
        search_queries=list(_first(doc, "search_queries", "searchQueries", default=[])),
    )
