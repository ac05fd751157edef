"""
MongoDB access for the order service.

Collections:
- "order"   orders owned by this service
- "product" product catalog (stock is adjusted through inventory.py)
- "cart"    customer carts (cleared after checkout)

`db` is None when DATABASE_URL / DATABASE_NAME are not configured; the API
reports that through /api/health and a 500 on every data endpoint.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import settings

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.database_url and settings.database_name:
    client = MongoClient(settings.database_url, tz_aware=True)
    db = client[settings.database_name]


def get_database() -> Optional[Database]:
    """FastAPI dependency returning the configured database (or None)."""
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a 24-hex id; returns None for anything malformed."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def ensure_indexes(database: Database) -> None:
    database["order"].create_index([("order_number", ASCENDING)], unique=True)
    database["order"].create_index([("customer_id", ASCENDING), ("created_at", DESCENDING)])
    database["order"].create_index([("farmer_id", ASCENDING), ("created_at", DESCENDING)])
    database["cart"].create_index([("user_id", ASCENDING)])
    logger.info("Indexes ensured on %s", database.name)


def create_document(collection_name: str, data: Dict[str, Any], database: Optional[Database] = None) -> str:
    """Insert a document with created_at/updated_at stamps, return its id as a string."""
    database = db if database is None else database
    if database is None:
        raise RuntimeError("Database not available")
    stamp = now_utc()
    doc = dict(data)
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
    database: Optional[Database] = None,
) -> List[Dict[str, Any]]:
    database = db if database is None else database
    if database is None:
        raise RuntimeError("Database not available")
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
