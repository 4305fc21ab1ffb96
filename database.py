"""
MongoDB access for Alumni Connect

The client is created once at import time from DATABASE_URL / DATABASE_NAME.
Routes receive the database through the `get_db` dependency so tests can
swap in an in-memory database.
"""
import logging
import math
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

from errors import AppError, NotFound

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "alumni_connect")

USERS = "user"
EVENTS = "event"
MENTORSHIP = "mentorshiprequest"

MAX_PAGE_SIZE = 100

client: Optional[MongoClient] = None
db = None

if DATABASE_URL:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


def get_db():
    if db is None:
        raise AppError("Database not configured", code="DATABASE_UNAVAILABLE", status_code=500)
    return db


def ensure_indexes(database) -> None:
    """Create the indexes the API relies on. Safe to call repeatedly."""
    database[USERS].create_index("email", unique=True)
    database[USERS].create_index([("isMentor", ASCENDING), ("isActive", ASCENDING)])
    database[EVENTS].create_index("eventDate")
    database[EVENTS].create_index("eventType")
    database[EVENTS].create_index("attendees.user")
    database[MENTORSHIP].create_index([("mentor", ASCENDING), ("mentee", ASCENDING), ("status", ASCENDING)])
    database[MENTORSHIP].create_index([("mentor", ASCENDING), ("status", ASCENDING)])
    database[MENTORSHIP].create_index([("mentee", ASCENDING), ("status", ASCENDING)])
    database[MENTORSHIP].create_index("mentorshipArea")
    database[MENTORSHIP].create_index([("requestedAt", DESCENDING)])


# Time helpers

def utcnow() -> datetime:
    # Naive UTC at millisecond precision, matching what MongoDB hands back
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# Id helpers

def parse_object_id(value: Any, resource: str = "Resource") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFound(f"{resource} not found")


def same_id(a: Any, b: Any) -> bool:
    return a is not None and b is not None and str(a) == str(b)


# Document helpers

def create_document(collection_name: str, data, database=None) -> str:
    """Insert a document with timestamps and return its id as a string."""
    target = database if database is not None else get_db()
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = target[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, database=None) -> List[dict]:
    target = database if database is not None else get_db()
    cursor = target[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def touch(update: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp `updatedAt` onto a MongoDB update document."""
    update = dict(update)
    update["$set"] = {**update.get("$set", {}), "updatedAt": utcnow()}
    return update


def page_params(page: int, limit: int) -> Dict[str, int]:
    page = max(page or 1, 1)
    limit = min(max(limit or 10, 1), MAX_PAGE_SIZE)
    return {"page": page, "limit": limit, "skip": (page - 1) * limit}


def paginate(collection, filter_dict: dict, sort: list, page: int, limit: int) -> Dict[str, Any]:
    params = page_params(page, limit)
    items = list(
        collection.find(filter_dict)
        .sort(sort)
        .skip(params["skip"])
        .limit(params["limit"])
    )
    total = collection.count_documents(filter_dict)
    return {
        "items": items,
        "count": len(items),
        "total": total,
        "page": params["page"],
        "pages": math.ceil(total / params["limit"]),
    }


def serialize(value: Any) -> Any:
    """Convert a MongoDB document into JSON-safe data: `_id` -> `id`, no passwords."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if key == "password":
                continue
            if key == "_id":
                out["id"] = serialize(item)
            else:
                out[key] = serialize(item)
        return out
    return value
