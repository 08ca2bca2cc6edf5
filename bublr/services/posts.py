"""Post persistence: drafts, saves (with search re-indexing), deletes, public reads."""

import logging
import re
from typing import List, Optional, Tuple

from pydantic import BaseModel

from bublr.errors import PostNotFound, UserNotFound, ValidationError, call_upstream
from bublr.schemas.records import PostRecord, UserRecord
from bublr.services.search import expand_for_indexing

logger = logging.getLogger("bublr.posts")

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class PostUpdate(BaseModel):
    title: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    slug: Optional[str] = None
    published: Optional[bool] = None


class PostService:
    def __init__(self, store, store_timeout: float = 5.0):
        self.store = store
        self.store_timeout = store_timeout

    async def _call(self, operation: str, *args):
        return await call_upstream(
            f"store.{operation}", getattr(self.store, operation), *args, timeout=self.store_timeout
        )

    async def _owned_post(self, user_id: str, post_id: str) -> PostRecord:
        post = await self._call("get_post", post_id)
        if post is None or post.author_id != user_id:
            raise PostNotFound(post_id)
        return post

    async def create_post_for_user(self, user_id: str) -> PostRecord:
        post = await self._call("create_post", user_id)
        logger.info("Draft %s created for user %s", post.id, user_id)
        return post

    async def save_post(self, user_id: str, post_id: str, changes: PostUpdate) -> PostRecord:
        """Apply editor changes and rebuild the post's search terms."""
        post = await self._owned_post(user_id, post_id)
        fields = changes.model_dump(exclude_none=True)

        if "slug" in fields:
            slug = fields["slug"].strip().lower()
            if not _SLUG_RE.match(slug):
                raise ValidationError(
                    "Slugs may only contain lowercase letters, numbers and single hyphens"
                )
            fields["slug"] = slug
        if fields.get("published") and not (fields.get("title") or post.title).strip():
            raise ValidationError("A post needs a title before it can be published")

        merged = post.model_copy(update=fields)
        fields["search_queries"] = expand_for_indexing(merged)
        return await self._call("save_post", post_id, fields)

    async def remove_post_for_user(self, user_id: str, post_id: str) -> None:
        await self._owned_post(user_id, post_id)
        await self._call("delete_post", user_id, post_id)

    async def get_profile(self, username: str) -> Tuple[UserRecord, List[PostRecord]]:
        user = await self._call("get_user_by_name", username)
        if user is None:
            raise UserNotFound(username)
        posts = await self._call("list_posts_for_user", user.id, True)
        return user, posts

    async def get_post_by_username_and_slug(self, username: str, slug: str) -> Tuple[UserRecord, PostRecord]:
        user = await self._call("get_user_by_name", username)
        if user is None:
            raise UserNotFound(username)
        post = await self._call("get_post_by_author_and_slug", user.id, slug)
        if post is None or not post.published:
            raise PostNotFound(slug)
        return user, post
