"""
Database connection

A single MongoClient is built on first use and shared by the
request-scoped store accessors. Handlers never touch it directly; they
receive stores through FastAPI dependencies.
"""
import logging
from functools import lru_cache

from pymongo import MongoClient
from pymongo.database import Database

import settings

logger = logging.getLogger(__name__)

USERS_COLLECTION = "user"
PRODUCTS_COLLECTION = "product"
CARTS_COLLECTION = "cart"


@lru_cache(maxsize=1)
def get_client() -> MongoClient:
    logger.info("Connecting to MongoDB at %s", settings.DATABASE_URL.split("@")[-1])
    return MongoClient(settings.DATABASE_URL)


def ensure_indexes(db: Database) -> None:
    # one user and one cart per email
    db[USERS_COLLECTION].create_index("email", unique=True)
    db[CARTS_COLLECTION].create_index("email", unique=True)


@lru_cache(maxsize=1)
def get_database() -> Database:
    db = get_client()[settings.DATABASE_NAME]
    ensure_indexes(db)
    return db
