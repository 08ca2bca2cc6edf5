"""Fuzzy post search."""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from bublr.api import deps
from bublr.services.search import PostSearchEngine

router = APIRouter()


class SearchHit(BaseModel):
    id: str
    author_id: str
    title: str
    excerpt: str
    slug: str
    score: float


@router.get("", response_model=List[SearchHit])
async def search_posts(
    q: Optional[str] = Query(None, max_length=500),
    limit: Optional[int] = Query(None, ge=1, le=100),
    engine: PostSearchEngine = Depends(deps.get_search_engine),
) -> Any:
    """Published posts ranked for ``q``; an empty query lists the most recent."""
    candidates = await engine.search_scored(q, limit)
    return [
        SearchHit(
            id=c.post.id,
            author_id=c.post.author_id,
            title=c.post.title,
            excerpt=c.post.excerpt,
            slug=c.post.slug,
            score=c.score,
        )
        for c in candidates
    ]
