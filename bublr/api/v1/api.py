from fastapi import APIRouter

from bublr.api.v1.endpoints import domains, posts, profile, search, subscription

api_router = APIRouter()
api_router.include_router(domains.router, prefix="/domain", tags=["custom-domain"])
api_router.include_router(subscription.router, prefix="/subscription", tags=["subscription"])
api_router.include_router(search.router, prefix="/search", tags=["search"])
api_router.include_router(posts.router, prefix="/posts", tags=["posts"])
api_router.include_router(profile.router, prefix="/profile", tags=["profile"])
