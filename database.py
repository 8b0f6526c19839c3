"""
Database access

One pymongo client shared by every router. Azure Cosmos DB (MongoDB API) is
used when its connection string is set, plain MongoDB otherwise. Collection
names follow the schema convention: lowercase of the model class name.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

import config

logger = logging.getLogger(__name__)


def _connect():
    if config.AZURE_COSMOS_CONNECTION_STRING:
        # Cosmos rejects retryable writes
        client = MongoClient(config.AZURE_COSMOS_CONNECTION_STRING, retryWrites=False, tz_aware=True)
        return client, "Azure Cosmos DB"
    if config.DATABASE_URL:
        return MongoClient(config.DATABASE_URL, tz_aware=True), "MongoDB"
    return None, None


client, database_type = _connect()
db = client[config.DATABASE_NAME] if client is not None else None


def now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    if isinstance(data, BaseModel):
        data = data.model_dump()
    data = dict(data)
    data.setdefault("created_at", now())
    data.setdefault("updated_at", now())
    result = db[collection_name].insert_one(data)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None, sort=None) -> List[Dict[str, Any]]:
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def plain(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [plain(v) for v in value]
    return value


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    # Convert ObjectId in nested fields (cart lines, reviews, addresses)
    for k, v in list(doc.items()):
        doc[k] = plain(v)
    doc.pop("password_hash", None)
    return doc


def parse_object_id(value: str, label: str = "id") -> ObjectId:
    if not value or not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=f"Invalid {label}")
    return ObjectId(value)


def ensure_indexes():
    if db is None:
        return
    db["user"].create_index("email", unique=True)
    db["product"].create_index("sku", unique=True)
    db["product"].create_index([("category", ASCENDING), ("is_active", ASCENDING)])
    db["product"].create_index([("is_active", ASCENDING), ("created_at", DESCENDING)])
    db["order"].create_index("order_number", unique=True, sparse=True)
    db["order"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    db["invoice"].create_index("invoice_number", unique=True)
    db["client"].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    logger.info("Indexes ensured on %s", config.DATABASE_NAME)
