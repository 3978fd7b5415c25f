import logging
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if config.DATABASE_URL:
    client = MongoClient(config.DATABASE_URL)
    db = client[config.DATABASE_NAME]
else:
    logger.warning("DATABASE_URL is not set, data routes will answer 500")


# collection -> indexed fields
INDEXES = {
    "user": ["email"],
    "category": ["slug"],
    "product": ["category_id", "slug", "is_available"],
    "productoption": ["product_id"],
    "producttopping": ["product_id", "topping_id"],
    "cartitem": ["user_id"],
    "wishlistitem": ["user_id"],
    "order": ["user_id", "order_status"],
    "orderitem": ["order_id"],
    "orderitemtopping": ["order_item_id"],
    "promotion": ["code"],
    "review": ["product_id", "user_id"],
    "settings": ["setting_id"],
}


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def ensure_indexes(database: Database) -> None:
    for collection_name, fields in INDEXES.items():
        for field in fields:
            database[collection_name].create_index([(field, ASCENDING)])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Mongo hands datetimes back naive; treat those as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_object_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid ID format")


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    doc.pop("password_hash", None)
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = as_utc(v).isoformat()
    return doc


def create_document(collection_name: str, data: Any) -> str:
    database = get_db()
    if isinstance(data, BaseModel):
        data = data.model_dump()
    now = utcnow()
    result = database[collection_name].insert_one({**data, "created_at": now, "updated_at": now})
    return str(result.inserted_id)


def get_document(collection_name: str, doc_id: str) -> Optional[dict]:
    return get_db()[collection_name].find_one({"_id": to_object_id(doc_id)})


def update_document(collection_name: str, doc_id: str, updates: dict) -> bool:
    result = get_db()[collection_name].update_one(
        {"_id": to_object_id(doc_id)},
        {"$set": {**updates, "updated_at": utcnow()}},
    )
    return result.matched_count > 0


def delete_document(collection_name: str, doc_id: str) -> bool:
    result = get_db()[collection_name].delete_one({"_id": to_object_id(doc_id)})
    return result.deleted_count > 0
