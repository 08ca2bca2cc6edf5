"""Create all database tables"""
import logging

from bublr.config import settings
from bublr.db.session import Database

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_tables():
    database = Database.from_settings(settings)
    database.init()
    try:
        logger.info("Creating all database tables...")
        database.create_all()
        logger.info("All tables created successfully!")
    finally:
        database.close()


if __name__ == "__main__":
    create_tables()
