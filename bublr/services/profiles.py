"""Profile settings: the signed-in user's name, display name, bio and link."""

import logging
import re
from typing import Optional

from pydantic import BaseModel

from bublr.errors import UserNotFound, ValidationError, call_upstream
from bublr.schemas.records import UserRecord

logger = logging.getLogger("bublr.profiles")

MAX_NAME_LENGTH = 64
_NAME_RE = re.compile(r"^[a-z0-9-]+$", re.I)

# First path segments the public /{username} routes would otherwise shadow
RESERVED_NAMES = frozenset({"dashboard", "api", "metrics", "health", "docs", "redoc", "static"})


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    about: Optional[str] = None
    link: Optional[str] = None


def validate_username(name: str) -> str:
    """Return the trimmed name or raise ``ValidationError``."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Username cannot be empty.")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Username can be at most {MAX_NAME_LENGTH} characters.")
    if not _NAME_RE.match(name):
        raise ValidationError(
            "Username can only consist of letters (a-z,A-Z), numbers (0-9) and dashes (-)."
        )
    if name.lower() in RESERVED_NAMES:
        raise ValidationError("That username is reserved.")
    return name


class ProfileService:
    def __init__(self, store, store_timeout: float = 5.0):
        self.store = store
        self.store_timeout = store_timeout

    async def _call(self, operation: str, *args):
        return await call_upstream(
            f"store.{operation}", getattr(self.store, operation), *args, timeout=self.store_timeout
        )

    async def get_profile_settings(self, user_id: str) -> UserRecord:
        user = await self._call("get_user", user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    async def update_profile(self, user_id: str, changes: ProfileUpdate) -> UserRecord:
        """Apply profile edits; a name already held by someone else is a ``NameConflictError``."""
        user = await self.get_profile_settings(user_id)
        fields = changes.model_dump(exclude_none=True)

        if "name" in fields:
            if fields["name"] == user.name:
                del fields["name"]
            else:
                fields["name"] = validate_username(fields["name"])
        for key in ("display_name", "about", "link"):
            if key in fields:
                fields[key] = fields[key].strip()

        if not fields:
            return user
        updated = await self._call("update_user", user_id, fields)
        if updated.name != user.name:
            logger.info("User %s renamed from %s to %s", user_id, user.name, updated.name)
        return updated
