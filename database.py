"""
MongoDB connection and document helpers.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import get_settings

logger = logging.getLogger(__name__)

PRODUCTS = "product"
BILLS = "bill"
COUNTERS = "counter"

_settings = get_settings()

# MongoClient connects lazily, so importing this module never blocks.
client: MongoClient = MongoClient(
    _settings.database_url,
    tz_aware=True,
    serverSelectionTimeoutMS=_settings.database_timeout_ms,
)
db: Database = client[_settings.database_name]


def get_db() -> Database:
    return db


def ensure_indexes(database: Database) -> None:
    database[PRODUCTS].create_index([("barcode", ASCENDING)], unique=True)
    database[PRODUCTS].create_index([("createdAt", DESCENDING)])
    database[BILLS].create_index([("createdAt", ASCENDING)])
    database[COUNTERS].create_index([("name", ASCENDING)], unique=True)
    logger.info(f"Indexes ensured on database '{database.name}'")


# -----------------------------
# Utilities
# -----------------------------

def oid(obj: Optional[str]) -> Optional[ObjectId]:
    if obj is None:
        return None
    try:
        return ObjectId(obj)
    except (InvalidId, TypeError):
        return None


def utc_naive(moment: datetime) -> datetime:
    """
    Convert to the form BSON stores: UTC, no offset, millisecond precision.
    Naive values are taken as UTC already.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.replace(microsecond=moment.microsecond // 1000 * 1000)


def to_str_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    # normalize ObjectId refs to string
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d
