"""Seed a demo author with a few published posts (development only)."""
import logging

from bublr.config import settings
from bublr.db.session import Database
from bublr.services.search import expand_for_indexing
from bublr.store import SqlDocumentStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_USERNAME = "demo"

DEMO_POSTS = [
    {
        "title": "Hello World",
        "excerpt": "The first post on this blog",
        "content": "<p>Welcome! This is where I write about <b>programming</b> and travel.</p>",
        "slug": "hello-world",
    },
    {
        "title": "Programming in the Mountains",
        "excerpt": "Notes from a remote working trip",
        "content": "<p>Coding with a view of the summit beats any office.</p>",
        "slug": "programming-in-the-mountains",
    },
    {
        "title": "Travel Checklist",
        "excerpt": "What I pack for every trip",
        "content": "<ul><li>Laptop</li><li>Charger</li><li>Good shoes</li></ul>",
        "slug": "travel-checklist",
    },
]


def init_db(store: SqlDocumentStore) -> None:
    if settings.is_production:
        logger.warning("⚠️  Refusing to seed demo data in production.")
        return

    user = store.get_user_by_name(DEMO_USERNAME)
    if user:
        logger.info("Demo user already exists, skipping")
        return

    logger.info("Creating demo user: %s", DEMO_USERNAME)
    user = store.create_user(DEMO_USERNAME, display_name="Demo Writer", about="Just testing Bublr.")

    for data in DEMO_POSTS:
        post = store.create_post(user.id)
        store.save_post(
            post.id,
            {**data, "published": True, "search_queries": expand_for_indexing(data)},
        )
        logger.info("  + %s", data["slug"])


def main() -> None:
    database = Database.from_settings(settings)
    database.init()
    try:
        init_db(SqlDocumentStore(database))
    finally:
        database.close()


if __name__ == "__main__":
    main()
