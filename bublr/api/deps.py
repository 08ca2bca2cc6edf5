"""
Request-scoped dependencies.

Every collaborator is built once in the application lifespan and parked on
``app.state``; routes pull them from there so tests can hand ``create_app``
their own store, DNS resolver and billing provider.
"""

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from bublr.config import Settings
from bublr.services.custom_domains import CustomDomainService
from bublr.services.posts import PostService
from bublr.services.profiles import ProfileService
from bublr.services.search import PostSearchEngine
from bublr.services.tenant_resolver import TenantResolver

logger = logging.getLogger("bublr.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.config


def get_store(request: Request):
    return request.app.state.store


def get_resolver(request: Request) -> TenantResolver:
    return request.app.state.tenant_resolver


def get_search_engine(request: Request) -> PostSearchEngine:
    return request.app.state.search_engine


def get_domain_service(request: Request) -> CustomDomainService:
    return request.app.state.domain_service


def get_post_service(request: Request) -> PostService:
    return request.app.state.post_service


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    config: Settings = Depends(get_settings),
) -> str:
    """User id (``sub``) from a verified bearer token."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise unauthorized
    try:
        payload = jwt.decode(
            credentials.credentials, config.SECRET_KEY, algorithms=[config.ALGORITHM]
        )
    except JWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise unauthorized
    user_id = payload.get("sub")
    if not user_id:
        raise unauthorized
    return str(user_id)
