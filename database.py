"""
MongoDB access helpers.

Collections are addressed by name through ``collection``; the module level
``db`` handle can be swapped (tests point it at an in-memory database).
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument

import config

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    client = MongoClient(
        config.DATABASE_URL,
        serverSelectionTimeoutMS=5000,
        socketTimeoutMS=45000,
        maxPoolSize=10,
        retryWrites=True,
    )
    db = client[config.DATABASE_NAME]


def utcnow() -> datetime:
    """Current UTC time without tzinfo, the form MongoDB hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_ms() -> int:
    """Milliseconds since the Unix epoch, for generated numbers and ids."""
    return int(time.time() * 1000)


def as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def collection(name: str):
    if db is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db[name]


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = collection(collection_name).insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_document(collection_name: str, doc_id: Union[str, ObjectId], **extra: Any) -> Optional[Dict[str, Any]]:
    query = {"_id": ObjectId(str(doc_id))}
    query.update(extra)
    return collection(collection_name).find_one(query)


def update_document(
    collection_name: str,
    doc_id: Union[str, ObjectId],
    fields: Dict[str, Any],
) -> Optional[Dict[str, Any]]:
    """Apply ``$set`` to one document and return it, or None if missing."""
    update = dict(fields)
    update["updated_at"] = utcnow()
    return collection(collection_name).find_one_and_update(
        {"_id": ObjectId(str(doc_id))},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )


def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(item) for item in value]
    return value


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    out: Dict[str, Any] = {}
    if "_id" in doc:
        out["id"] = str(doc["_id"])
    for k, v in doc.items():
        if k == "_id":
            continue
        out[k] = _serialize_value(v)
    return out


def ensure_indexes() -> None:
    users = collection("users")
    users.create_index([("email", ASCENDING)], unique=True)
    users.create_index([("supabase_id", ASCENDING)], unique=True)

    rooms = collection("rooms")
    rooms.create_index([("number", ASCENDING)])
    rooms.create_index([("status", ASCENDING)])

    guests = collection("guests")
    for field in ("status", "room", "room_number", "email", "phone"):
        guests.create_index([(field, ASCENDING)])
    guests.create_index([("check_in_date", ASCENDING), ("check_out_date", ASCENDING)])

    bills = collection("bills")
    bills.create_index([("bill_number", ASCENDING)], unique=True)
    for field in ("guest", "room", "room_number", "status"):
        bills.create_index([(field, ASCENDING)])

    collection("orders").create_index([("guest", ASCENDING), ("created_at", DESCENDING)])
    collection("food").create_index([("category", ASCENDING)])

    tickets = collection("tickets")
    tickets.create_index([("status", ASCENDING), ("completed_at", ASCENDING)])
    tickets.create_index([("room", ASCENDING)])
    logger.info("MongoDB indexes ensured")
