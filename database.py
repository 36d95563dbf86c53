"""
MongoDB connection and low-level document helpers.

The database handle is created lazily on first use and cached; request
handlers receive it through the ``get_db`` dependency so tests can swap in
an in-memory database.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Optional

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import DATABASE_NAME, DATABASE_URL
from errors import Conflict, StoreUnavailable

logger = logging.getLogger(__name__)

# collection -> fields carrying a unique index
UNIQUE_FIELDS = {
    "project": ("id", "numberOrder"),
    "client": ("id", "clientId"),
    "service": ("id",),
    "account": ("userId", "email"),
}


def ensure_indexes(db: Database) -> None:
    for collection_name, fields in UNIQUE_FIELDS.items():
        for field in fields:
            db[collection_name].create_index([(field, ASCENDING)], unique=True)
        db[collection_name].create_index([("createdAt", ASCENDING)])


@lru_cache(maxsize=1)
def get_database() -> Database:
    client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = client[DATABASE_NAME]
    ensure_indexes(db)
    logger.info("Connected to MongoDB database %s", DATABASE_NAME)
    return db


def get_db() -> Database:
    try:
        return get_database()
    except PyMongoError:
        logger.exception("MongoDB connection error")
        raise StoreUnavailable()


def utcnow() -> datetime:
    """Naive UTC timestamp truncated to BSON's millisecond precision."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def advance(previous: Optional[datetime]) -> datetime:
    """A timestamp strictly later than ``previous``."""
    now = utcnow()
    if previous is not None:
        if previous.tzinfo is not None:
            previous = previous.astimezone(timezone.utc).replace(tzinfo=None)
        if now <= previous:
            now = previous + timedelta(milliseconds=1)
    return now


def encode(value):
    """Make pydantic output storable: BSON has no plain date type."""
    if isinstance(value, dict):
        return {k: encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [encode(v) for v in value]
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return value


def strip_id(doc):
    if doc is not None:
        doc.pop("_id", None)
    return doc


def duplicate_field(error: DuplicateKeyError, collection, document: dict) -> Optional[str]:
    key_pattern = (getattr(error, "details", None) or {}).get("keyPattern")
    if key_pattern:
        return next(iter(key_pattern))
    # Not every server/driver reports keyPattern; find the colliding field ourselves
    for field in UNIQUE_FIELDS.get(collection.name, ()):
        if field not in document:
            continue
        query = {field: document[field]}
        if field != "id" and "id" in document:
            query["id"] = {"$ne": document["id"]}
        if collection.find_one(query) is not None:
            return field
    return None


@contextmanager
def store_call(collection, action: str, document: Optional[dict] = None, label: Optional[str] = None):
    """Translate pymongo failures into the service error taxonomy."""
    try:
        yield
    except DuplicateKeyError as e:
        field = duplicate_field(e, collection, document or {})
        label = label or collection.name
        article = "an" if label[:1].lower() in "aeiou" else "a"
        logger.warning("Duplicate %s on %s (%s)", field, collection.name, action)
        raise Conflict(
            f"{article.capitalize()} {label} with this {field or 'value'} already exists", field=field
        ) from e
    except PyMongoError as e:
        logger.exception("Error %s %s", action, collection.name)
        raise StoreUnavailable() from e
