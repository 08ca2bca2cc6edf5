"""
Error taxonomy and the upstream-call guard.

Validation and not-found conditions are reported to callers as typed
results; the exception classes below are raised inside the core and
caught before they cross a service boundary. Collaborator failures are
funnelled through ``call_upstream`` so every store / DNS / billing call
has a timeout and surfaces as ``UpstreamError``.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger("bublr.upstream")


class BublrError(Exception):
    """Base class for every error raised by the core."""


class ValidationError(BublrError):
    """Bad user input (domain format, query parameters)."""


class NotFoundError(BublrError):
    """A user, domain or post does not exist."""


class UserNotFound(NotFoundError):
    pass


class PostNotFound(NotFoundError):
    pass


class DomainNotFound(NotFoundError):
    pass


class ConflictError(BublrError):
    """A uniqueness constraint would be violated."""


class DomainConflictError(ConflictError):
    """The domain is already claimed by another user."""

    def __init__(self, domain: str):
        super().__init__(f"Domain {domain} is already registered to another user")
        self.domain = domain


class SlugConflictError(ConflictError):
    def __init__(self, slug: str):
        super().__init__(f"You already have a post with the slug '{slug}'")
        self.slug = slug


class NameConflictError(ConflictError):
    def __init__(self, name: str):
        super().__init__(f"The username '{name}' is already in use")
        self.name = name


class UpstreamError(BublrError):
    """A collaborator (store, DNS, billing) failed."""

    def __init__(self, operation: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.cause = cause


class UpstreamTimeout(UpstreamError):
    pass


class ConfigurationError(BublrError):
    """A required setting is missing; raised at startup, never per request."""


# Errors that carry core semantics and must pass through call_upstream as-is
_PASSTHROUGH = (NotFoundError, ConflictError, ValidationError, UpstreamError)


async def call_upstream(
    operation: str,
    func: Callable[..., Any],
    *args: Any,
    timeout: float,
    **kwargs: Any,
) -> Any:
    """Run a collaborator call with a hard timeout.

    ``func`` may be a plain function (run in a worker thread) or a
    coroutine function. Expiry raises ``UpstreamTimeout``; any other
    collaborator exception is wrapped in ``UpstreamError``.
    """
    try:
        if inspect.iscoroutinefunction(func):
            return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        logger.warning("%s timed out after %.1fs (args=%r)", operation, timeout, args)
        raise UpstreamTimeout(operation, f"timed out after {timeout}s", e) from e
    except _PASSTHROUGH:
        raise
    except Exception as e:
        logger.warning("%s failed (args=%r): %s", operation, args, e)
        raise UpstreamError(operation, str(e), e) from e
