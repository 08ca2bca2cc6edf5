"""
Document store interface.

The core needs five capabilities from its store: get-by-id, get-by-unique
field (``name``, custom domain), a bounded scan of published posts by
recency, an array-membership-any filter over at most 30 terms, and atomic
field updates. Anything that offers these can back the services.
"""

from datetime import datetime
from typing import Any, List, Mapping, Optional, Protocol, Sequence

from bublr.schemas.records import PostRecord, UserRecord

# Ceiling on the number of terms a single membership query may carry
MAX_MEMBERSHIP_TERMS = 30


class DocumentStore(Protocol):
    # ── users ──
    def get_user(self, user_id: str) -> Optional[UserRecord]: ...

    def get_user_by_name(self, name: str) -> Optional[UserRecord]: ...

    def get_user_by_domain(self, domain: str) -> Optional[UserRecord]: ...

    def get_user_by_subscription_id(self, subscription_id: str) -> Optional[UserRecord]: ...

    def create_user(self, name: str, **fields: Any) -> UserRecord: ...

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> UserRecord: ...

    def claim_custom_domain(self, user_id: str, domain: str) -> UserRecord: ...

    def activate_custom_domain(self, user_id: str, domain: str, verified_at: datetime) -> bool: ...

    # ── posts ──
    def get_post(self, post_id: str) -> Optional[PostRecord]: ...

    def get_post_by_author_and_slug(self, author_id: str, slug: str) -> Optional[PostRecord]: ...

    def list_posts_for_user(self, user_id: str, published_only: bool = True) -> List[PostRecord]: ...

    def list_recent_published_posts(self, limit: int) -> List[PostRecord]: ...

    def find_published_posts_by_terms(self, terms: Sequence[str], limit: int) -> List[PostRecord]: ...

    def create_post(self, author_id: str) -> PostRecord: ...

    def save_post(self, post_id: str, fields: Mapping[str, Any]) -> PostRecord: ...

    def delete_post(self, author_id: str, post_id: str) -> None: ...
