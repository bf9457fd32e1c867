"""
MongoDB access for the storefront.

`db` is None when DATABASE_URL is not configured; the health check reports that
instead of failing at import time.
"""
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

client = MongoClient(DATABASE_URL) if DATABASE_URL else None
db = client[DATABASE_NAME] if client is not None else None

# (collection, keys) pairs that must stay unique
UNIQUE_INDEXES = [
    ("user", [("email", ASCENDING)]),
    ("order", [("order_number", ASCENDING)]),
    ("payment", [("order_id", ASCENDING)]),
    ("cart_item", [("user_id", ASCENDING), ("product_id", ASCENDING)]),
]


def now() -> datetime:
    return datetime.now(timezone.utc)


def collection(name: str):
    if db is None:
        raise RuntimeError("Database is not configured (set DATABASE_URL)")
    return db[name]


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id string, returning None for anything that is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc.setdefault("updated_at", stamp)
    inserted_id = collection(collection_name).insert_one(doc).inserted_id
    return str(inserted_id)


def ensure_indexes() -> None:
    for name, keys in UNIQUE_INDEXES:
        collection(name).create_index(keys, unique=True)

