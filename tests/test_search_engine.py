"""Tests for the post search engine against the SQL store."""
from datetime import datetime, timedelta, timezone

import pytest

from bublr.models import Post
from bublr.services.posts import PostService, PostUpdate
from bublr.services.search import PostSearchEngine


class _BrokenStore:
    def list_recent_published_posts(self, limit):
        raise ConnectionError("store unavailable")

    def find_published_posts_by_terms(self, terms, limit):
        raise ConnectionError("store unavailable")


async def _publish(service, user_id, **fields):
    post = await service.create_post_for_user(user_id)
    return await service.save_post(user_id, post.id, PostUpdate(published=True, **fields))


def _set_last_edited(database, post_id, when):
    with database.session() as db:
        db.get(Post, post_id).last_edited = when


@pytest.fixture
def engine(store):
    return PostSearchEngine(store, default_limit=20, max_limit=100)


@pytest.fixture
async def library(store, database, subscriber):
    """Three published posts and one draft, with distinct edit times."""
    service = PostService(store)
    mountains = await _publish(
        service,
        subscriber.id,
        title="Programming in the Mountains",
        excerpt="Notes from a remote working trip",
        content="<p>Coding with a view of the summit.</p>",
        slug="programming-in-the-mountains",
    )
    hello = await _publish(
        service,
        subscriber.id,
        title="Hello World",
        excerpt="The first post on this blog",
        content="<p>Welcome to my corner of the internet.</p>",
        slug="hello-world",
    )
    travel = await _publish(
        service,
        subscriber.id,
        title="Travel Checklist",
        excerpt="What I pack for every trip",
        content="<ul><li>Laptop</li><li>Charger</li></ul>",
        slug="travel-checklist",
    )
    draft = await service.create_post_for_user(subscriber.id)
    await service.save_post(subscriber.id, draft.id, PostUpdate(title="Secret Programming Draft"))

    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    _set_last_edited(database, mountains.id, base)
    _set_last_edited(database, hello.id, base + timedelta(days=1))
    _set_last_edited(database, travel.id, base + timedelta(days=2))
    return {"mountains": mountains, "hello": hello, "travel": travel, "draft": draft}


async def test_empty_query_returns_recent_posts(engine, library):
    posts = await engine.search("")
    assert [p.slug for p in posts] == ["travel-checklist", "hello-world", "programming-in-the-mountains"]


async def test_query_of_short_words_returns_recent_posts(engine, library):
    posts = await engine.search("a of", limit=2)
    assert [p.slug for p in posts] == ["travel-checklist", "hello-world"]


async def test_exact_title_ranks_first(engine, library):
    results = await engine.search_scored("hello world")
    assert results[0].post.slug == "hello-world"
    assert results[0].score > 300


async def test_misspelled_query_finds_post(engine, library):
    posts = await engine.search("programing")
    assert posts[0].slug == "programming-in-the-mountains"


async def test_drafts_are_never_returned(engine, library):
    posts = await engine.search("secret programming draft")
    assert all(p.published for p in posts)
    assert library["draft"].id not in {p.id for p in posts}


async def test_unmatched_query_returns_nothing(engine, library):
    assert await engine.search("zzzzqqq") == []


async def test_limit_is_applied(engine, library):
    posts = await engine.search("trip", limit=1)
    assert len(posts) == 1


async def test_limit_is_clamped(store, library):
    engine = PostSearchEngine(store, default_limit=2, max_limit=2)
    assert len(await engine.search("", limit=50)) == 2
    assert len(await engine.search(None)) == 2


async def test_store_failure_returns_empty_list():
    engine = PostSearchEngine(_BrokenStore())
    assert await engine.search("programming") == []
    assert await engine.search("") == []


def test_from_settings(config, store):
    engine = PostSearchEngine.from_settings(config, store)
    assert engine.default_limit == 20
    assert engine.max_limit == 100
    assert engine.candidate_multiplier == 2


async def test_indexed_token_retrieves_its_post(store, subscriber, engine):
    service = PostService(store)
    post = await _publish(service, subscriber.id, title="Quokka Sightings", slug="quokka")
    for token in post.search_queries:
        results = await engine.search(token)
        assert post.id in {p.id for p in results}, token
