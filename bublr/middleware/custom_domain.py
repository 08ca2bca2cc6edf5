"""
Custom Domain Resolution Middleware

Resolves a tenant from the Host header and rewrites the request path to
that tenant's profile (``/`` → ``/{name}``). Paths under the excluded
prefixes (API, static assets) are never rewritten, and any host that is
not a servable tenant passes through untouched.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from bublr.logging_config import host_ctx

logger = logging.getLogger("bublr.domain")


class CustomDomainMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        resolver = request.app.state.tenant_resolver
        path = request.url.path
        host = request.headers.get("host", "")
        host_ctx.set(resolver.normalize_host(host) or "-")

        if resolver.is_excluded_path(path) or resolver.is_default_host(host):
            return await call_next(request)

        resolution = await resolver.resolve_tenant(host)
        if not resolution.servable:
            return await call_next(request)

        rewritten = resolver.rewrite_for_tenant(resolution.user, path)
        request.scope["path"] = rewritten
        request.scope["raw_path"] = rewritten.encode("utf-8")
        request.state.tenant = resolution.user
        logger.debug("Rewrote %s%s → %s", resolution.host, path, rewritten)
        return await call_next(request)
