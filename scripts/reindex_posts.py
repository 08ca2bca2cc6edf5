"""
Recompute search terms for every post.

Run after changing the term expansion rules. ``last_edited`` is left
untouched so recency ordering does not change.

Usage:
    python -m scripts.reindex_posts [--batch-size 200]
"""
import argparse
import logging

from bublr.config import settings
from bublr.db.session import Database
from bublr.models import Post, PostSearchTerm
from bublr.services.search import expand_for_indexing

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def reindex(database: Database, batch_size: int = 200) -> int:
    updated = 0
    offset = 0
    while True:
        with database.session() as db:
            posts = db.query(Post).order_by(Post.id).offset(offset).limit(batch_size).all()
            if not posts:
                break
            for post in posts:
                terms = expand_for_indexing(
                    {"title": post.title, "excerpt": post.excerpt, "content": post.content}
                )
                if terms != list(post.search_queries or []):
                    post.search_queries = terms
                    post.terms = [PostSearchTerm(term=t) for t in terms]
                    updated += 1
        offset += batch_size
        logger.info("Processed %d posts (%d updated)", offset, updated)
    return updated


def main():
    parser = argparse.ArgumentParser(description="Recompute post search terms")
    parser.add_argument("--batch-size", type=int, default=200)
    args = parser.parse_args()

    database = Database.from_settings(settings)
    database.init()
    try:
        updated = reindex(database, args.batch_size)
    finally:
        database.close()
    logger.info("Reindex complete: %d posts updated", updated)


if __name__ == "__main__":
    main()
