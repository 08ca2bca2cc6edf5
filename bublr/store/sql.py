"""SQLAlchemy implementation of the document store."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bublr.db.session import Database
from bublr.errors import (
    DomainConflictError,
    NameConflictError,
    PostNotFound,
    SlugConflictError,
    UserNotFound,
)
from bublr.models.post import Post, PostSearchTerm
from bublr.models.user import DomainStatus, User
from bublr.schemas.records import (
    PostRecord,
    UserRecord,
    normalize_post_document,
    normalize_user_document,
)
from bublr.store.base import MAX_MEMBERSHIP_TERMS

logger = logging.getLogger("bublr.db")

_USER_FIELDS = {
    "name",
    "display_name",
    "about",
    "link",
    "photo",
    "custom_domain",
    "custom_domain_status",
    "custom_domain_verified_at",
    "subscription_id",
    "subscription_status",
    "billing_customer_id",
    "grace_period_ends_at",
}
_POST_FIELDS = {"title", "excerpt", "content", "slug", "published", "search_queries"}


def _row_to_dict(row) -> dict:
    return {c.name: getattr(row, c.name) for c in row.__table__.columns}


class SqlDocumentStore:
    def __init__(self, database: Database):
        self._db = database

    # ─────────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────────

    @staticmethod
    def _user_record(user: User) -> UserRecord:
        doc = _row_to_dict(user)
        doc["posts"] = [p.id for p in user.posts]
        return normalize_user_document(doc)

    @staticmethod
    def _load_user(db: Session, user_id: str) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._db.session() as db:
            user = db.get(User, user_id)
            return self._user_record(user) if user else None

    def get_user_by_name(self, name: str) -> Optional[UserRecord]:
        with self._db.session() as db:
            user = db.query(User).filter(User.name == name).first()
            return self._user_record(user) if user else None

    def get_user_by_domain(self, domain: str) -> Optional[UserRecord]:
        with self._db.session() as db:
            user = db.query(User).filter(User.custom_domain == domain).first()
            return self._user_record(user) if user else None

    def get_user_by_subscription_id(self, subscription_id: str) -> Optional[UserRecord]:
        with self._db.session() as db:
            user = db.query(User).filter(User.subscription_id == subscription_id).first()
            return self._user_record(user) if user else None

    def create_user(self, name: str, **fields: Any) -> UserRecord:
        unknown = set(fields) - _USER_FIELDS - {"id"}
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)}")
        with self._db.session() as db:
            user = User(name=name, **fields)
            db.add(user)
            db.flush()
            db.refresh(user)
            return self._user_record(user)

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> UserRecord:
        unknown = set(fields) - _USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)}")
        with self._db.session() as db:
            user = self._load_user(db, user_id)
            name = fields.get("name")
            if name is not None and name != user.name:
                taken = db.query(User.id).filter(User.name == name, User.id != user_id).first()
                if taken:
                    raise NameConflictError(name)
            for key, value in fields.items():
                setattr(user, key, value)
            try:
                db.flush()
            except IntegrityError as e:
                if name is not None and "custom_domain" not in fields:
                    raise NameConflictError(name) from e
                raise DomainConflictError(fields.get("custom_domain", "")) from e
            return self._user_record(user)

    def claim_custom_domain(self, user_id: str, domain: str) -> UserRecord:
        """Point ``user_id`` at ``domain`` as a pending domain.

        The unique index on ``custom_domain`` makes the claim atomic: two
        concurrent claims for the same domain cannot both commit.
        """
        with self._db.session() as db:
            user = self._load_user(db, user_id)
            holder = (
                db.query(User.id)
                .filter(User.custom_domain == domain, User.id != user_id)
                .first()
            )
            if holder:
                raise DomainConflictError(domain)

            user.custom_domain = domain
            user.custom_domain_status = DomainStatus.PENDING.value
            user.custom_domain_verified_at = None
            try:
                db.flush()
            except IntegrityError as e:
                raise DomainConflictError(domain) from e
            return self._user_record(user)

    def activate_custom_domain(self, user_id: str, domain: str, verified_at: datetime) -> bool:
        """Conditional write: only activates if the user still holds ``domain``."""
        with self._db.session() as db:
            result = db.execute(
                update(User)
                .where(User.id == user_id, User.custom_domain == domain)
                .values(
                    custom_domain_status=DomainStatus.ACTIVE.value,
                    custom_domain_verified_at=verified_at,
                )
            )
            return result.rowcount == 1

    # ─────────────────────────────────────────────
    # Posts
    # ─────────────────────────────────────────────

    @staticmethod
    def _post_record(post: Post) -> PostRecord:
        return normalize_post_document(_row_to_dict(post))

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        with self._db.session() as db:
            post = db.get(Post, post_id)
            return self._post_record(post) if post else None

    def get_post_by_author_and_slug(self, author_id: str, slug: str) -> Optional[PostRecord]:
        with self._db.session() as db:
            post = (
                db.query(Post)
                .filter(Post.author_id == author_id, Post.slug == slug)
                .first()
            )
            return self._post_record(post) if post else None

    def list_posts_for_user(self, user_id: str, published_only: bool = True) -> List[PostRecord]:
        with self._db.session() as db:
            q = db.query(Post).filter(Post.author_id == user_id)
            if published_only:
                q = q.filter(Post.published.is_(True))
            return [self._post_record(p) for p in q.order_by(Post.last_edited.desc()).all()]

    def list_recent_published_posts(self, limit: int) -> List[PostRecord]:
        with self._db.session() as db:
            posts = (
                db.query(Post)
                .filter(Post.published.is_(True))
                .order_by(Post.last_edited.desc(), Post.id)
                .limit(limit)
                .all()
            )
            return [self._post_record(p) for p in posts]

    def find_published_posts_by_terms(self, terms: Sequence[str], limit: int) -> List[PostRecord]:
        """Published posts whose search terms contain any of ``terms``."""
        if len(terms) > MAX_MEMBERSHIP_TERMS:
            raise ValueError(
                f"membership filter accepts at most {MAX_MEMBERSHIP_TERMS} terms, got {len(terms)}"
            )
        if not terms:
            return []
        with self._db.session() as db:
            matching = select(PostSearchTerm.post_id).where(PostSearchTerm.term.in_(list(terms)))
            posts = (
                db.query(Post)
                .filter(Post.published.is_(True), Post.id.in_(matching))
                .order_by(Post.last_edited.desc(), Post.id)
                .limit(limit)
                .all()
            )
            return [self._post_record(p) for p in posts]

    def create_post(self, author_id: str) -> PostRecord:
        """Create an empty draft; its slug starts out as its id."""
        with self._db.session() as db:
            self._load_user(db, author_id)
            post_id = str(uuid.uuid4())
            post = Post(
                id=post_id,
                author_id=author_id,
                title="",
                excerpt="",
                content="",
                slug=post_id,
                published=False,
                last_edited=datetime.now(timezone.utc),
                search_queries=[],
            )
            db.add(post)
            db.flush()
            return self._post_record(post)

    def save_post(self, post_id: str, fields: Mapping[str, Any]) -> PostRecord:
        unknown = set(fields) - _POST_FIELDS
        if unknown:
            raise ValueError(f"Unknown post fields: {sorted(unknown)}")
        with self._db.session() as db:
            post = db.get(Post, post_id)
            if post is None:
                raise PostNotFound(post_id)

            slug = fields.get("slug")
            if slug is not None and slug != post.slug:
                taken = (
                    db.query(Post.id)
                    .filter(Post.author_id == post.author_id, Post.slug == slug, Post.id != post_id)
                    .first()
                )
                if taken:
                    raise SlugConflictError(slug)

            for key, value in fields.items():
                setattr(post, key, value)
            post.last_edited = datetime.now(timezone.utc)

            if "search_queries" in fields:
                post.terms = [PostSearchTerm(term=t) for t in dict.fromkeys(fields["search_queries"])]
            try:
                db.flush()
            except IntegrityError as e:
                raise SlugConflictError(slug or post.slug) from e
            return self._post_record(post)

    def delete_post(self, author_id: str, post_id: str) -> None:
        with self._db.session() as db:
            post = db.get(Post, post_id)
            if post is None or post.author_id != author_id:
                raise PostNotFound(post_id)
            db.delete(post)
            logger.info("Post %s removed for user %s", post_id, author_id)
