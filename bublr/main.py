from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI

from bublr.api.profiles import router as profiles_router
from bublr.api.v1.api import api_router
from bublr.config import Settings, settings
from bublr.db.session import Database
from bublr.logging_config import setup_logging
from bublr.metrics import set_app_info
from bublr.middleware.custom_domain import CustomDomainMiddleware
from bublr.middleware.metrics import PrometheusMiddleware, metrics_endpoint
from bublr.middleware.request_logging import RequestLoggingMiddleware
from bublr.services.billing import BillingStatusProvider, get_billing_provider
from bublr.services.custom_domains import CustomDomainService
from bublr.services.domains import DNSResolver, DnsPythonResolver
from bublr.services.posts import PostService
from bublr.services.profiles import ProfileService
from bublr.services.search import PostSearchEngine
from bublr.services.tenant_resolver import TenantResolver
from bublr.store import SqlDocumentStore

logger = logging.getLogger("bublr.app")


def create_app(
    config: Settings = settings,
    database: Optional[Database] = None,
    dns_resolver: Optional[DNSResolver] = None,
    billing: Optional[BillingStatusProvider] = None,
) -> FastAPI:
    """Build the application; collaborators not passed in come from ``config``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database.from_settings(config)
        db.init()
        if config.is_development:
            db.create_all()

        store = SqlDocumentStore(db)
        provider = billing or get_billing_provider(config, store)
        resolver = dns_resolver or DnsPythonResolver(timeout=config.DNS_TIMEOUT)

        app.state.config = config
        app.state.database = db
        app.state.store = store
        app.state.tenant_resolver = TenantResolver.from_settings(config, store)
        app.state.search_engine = PostSearchEngine.from_settings(config, store)
        app.state.domain_service = CustomDomainService.from_settings(config, store, provider, resolver)
        app.state.post_service = PostService(store, store_timeout=config.STORE_TIMEOUT)
        app.state.profile_service = ProfileService(store, store_timeout=config.STORE_TIMEOUT)
        logger.info("%s started (env=%s, app domain=%s)", config.APP_NAME, config.APP_ENV, config.APP_DOMAIN)
        try:
            yield
        finally:
            if billing is None:
                await provider.aclose()
            if database is None:
                db.close()

    app = FastAPI(
        title=config.APP_NAME,
        openapi_url=f"{config.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )

    # Starlette runs the last-added middleware first: logging → metrics → custom domain
    app.add_middleware(CustomDomainMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "env": config.APP_ENV}

    app.add_route("/metrics", metrics_endpoint)
    app.include_router(api_router, prefix=config.API_V1_STR)
    # Catch-all profile routes go last
    app.include_router(profiles_router, tags=["profiles"])
    set_app_info(version="0.1.0", env=config.APP_ENV)
    return app


# ── Initialize structured logging ──
setup_logging()

app = create_app()
