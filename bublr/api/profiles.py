"""
Public profile pages.

These are the targets of the custom-domain rewrite: a request for ``/`` on
a tenant's domain arrives here as ``/{username}``.
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from bublr.api import deps
from bublr.errors import PostNotFound, UpstreamError, UserNotFound
from bublr.services.posts import PostService

router = APIRouter()


class AuthorOut(BaseModel):
    id: str
    name: str
    display_name: Optional[str] = None
    about: Optional[str] = None
    link: Optional[str] = None
    photo: Optional[str] = None


class PostSummary(BaseModel):
    id: str
    title: str
    excerpt: str
    slug: str
    last_edited: Optional[datetime] = None


class ProfileOut(BaseModel):
    author: AuthorOut
    posts: List[PostSummary]


class PostPage(BaseModel):
    author: AuthorOut
    id: str
    title: str
    excerpt: str
    content: str
    slug: str
    last_edited: Optional[datetime] = None


def _author(user) -> AuthorOut:
    return AuthorOut(**user.model_dump(include=set(AuthorOut.model_fields)))


@router.get("/{username}", response_model=ProfileOut)
async def read_profile(
    username: str,
    service: PostService = Depends(deps.get_post_service),
) -> Any:
    try:
        user, posts = await service.get_profile(username)
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except UpstreamError:
        raise HTTPException(status_code=503, detail="Profile is temporarily unavailable")
    return ProfileOut(
        author=_author(user),
        posts=[PostSummary(**p.model_dump(include=set(PostSummary.model_fields))) for p in posts],
    )


@router.get("/{username}/{slug}", response_model=PostPage)
async def read_post(
    username: str,
    slug: str,
    service: PostService = Depends(deps.get_post_service),
) -> Any:
    try:
        user, post = await service.get_post_by_username_and_slug(username, slug)
    except (UserNotFound, PostNotFound):
        raise HTTPException(status_code=404, detail="Post not found")
    except UpstreamError:
        raise HTTPException(status_code=503, detail="Post is temporarily unavailable")
    fields = post.model_dump(include=set(PostPage.model_fields) - {"author"})
    return PostPage(author=_author(user), **fields)
