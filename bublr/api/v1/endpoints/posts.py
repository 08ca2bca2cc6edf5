"""Post editor API: create a draft, save it, delete it."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from bublr.api import deps
from bublr.errors import PostNotFound, SlugConflictError, UpstreamError, UserNotFound, ValidationError
from bublr.schemas.records import PostRecord
from bublr.services.posts import PostService, PostUpdate

router = APIRouter()
logger = logging.getLogger("bublr.posts")


def _raise_for(e: Exception, post_id: str = "") -> None:
    if isinstance(e, (PostNotFound, UserNotFound)):
        raise HTTPException(status_code=404, detail="Post not found" if post_id else "User not found")
    if isinstance(e, SlugConflictError):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, UpstreamError):
        logger.error("Post operation failed: %s", e)
        raise HTTPException(status_code=503, detail="Post storage is temporarily unavailable")
    raise e


@router.post("", response_model=PostRecord, status_code=status.HTTP_201_CREATED)
async def create_post(
    user_id: str = Depends(deps.get_current_user_id),
    service: PostService = Depends(deps.get_post_service),
) -> Any:
    try:
        return await service.create_post_for_user(user_id)
    except (UserNotFound, UpstreamError) as e:
        _raise_for(e)


@router.put("/{post_id}", response_model=PostRecord)
async def save_post(
    post_id: str,
    body: PostUpdate,
    user_id: str = Depends(deps.get_current_user_id),
    service: PostService = Depends(deps.get_post_service),
) -> Any:
    """Save editor changes; the search index terms are recomputed."""
    try:
        return await service.save_post(user_id, post_id, body)
    except (PostNotFound, SlugConflictError, ValidationError, UpstreamError) as e:
        _raise_for(e, post_id)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: str,
    user_id: str = Depends(deps.get_current_user_id),
    service: PostService = Depends(deps.get_post_service),
) -> None:
    try:
        await service.remove_post_for_user(user_id, post_id)
    except (PostNotFound, UpstreamError) as e:
        _raise_for(e, post_id)
