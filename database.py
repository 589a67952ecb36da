"""
MongoDB access for the Study Share API.

The handle is built once at startup (``connect``) and stored on
``app.state.db``; route handlers receive it through ``get_db``. With
``USE_MEMORY_DB`` an in-memory mongomock client stands in for the server.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import mongomock
from bson import ObjectId
from fastapi import Request
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

import config
from errors import ServerError, ValidationError

logger = logging.getLogger("study_share.database")

USERS = "user"
NOTES = "note"
FILES = "file"
WHITEBOARDS = "whiteboard"
QUESTIONS = "question"

# Newest first; ObjectIds grow monotonically so they break ties on equal timestamps.
NEWEST_FIRST = [("updatedAt", DESCENDING), ("_id", DESCENDING)]


def connect(url: Optional[str] = None, name: Optional[str] = None, in_memory: Optional[bool] = None) -> Tuple[Any, Database]:
    in_memory = config.USE_MEMORY_DB if in_memory is None else in_memory
    url = url or config.DATABASE_URL
    name = name or config.DATABASE_NAME
    if in_memory:
        logger.info("Using in-memory MongoDB")
        client = mongomock.MongoClient()
    else:
        if not url:
            raise RuntimeError("DATABASE_URL is not set and USE_MEMORY_DB is disabled")
        logger.info("Connecting to MongoDB database %s", name)
        client = MongoClient(url)
    db = client[name]
    ensure_indexes(db)
    return client, db


def ensure_indexes(db: Database) -> None:
    users = db[USERS]
    users.create_index("registrationNumber", unique=True)
    # Students mirror a connected code in ``teacherCode``, so uniqueness only applies to staff.
    users.create_index(
        "teacherCode",
        unique=True,
        partialFilterExpression={"role": "staff"},
        name="staff_teacher_code_unique",
    )
    db[NOTES].create_index([("authorId", ASCENDING), ("updatedAt", DESCENDING)])
    db[NOTES].create_index([("teacherCode", ASCENDING), ("isShared", ASCENDING)])
    db[FILES].create_index([("uploadedBy", ASCENDING), ("updatedAt", DESCENDING)])
    db[FILES].create_index([("teacherCode", ASCENDING), ("isShared", ASCENDING)])
    db[WHITEBOARDS].create_index([("authorId", ASCENDING), ("updatedAt", DESCENDING)])
    db[WHITEBOARDS].create_index([("teacherCode", ASCENDING), ("isShared", ASCENDING)])
    db[QUESTIONS].create_index([("createdAt", DESCENDING)])


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise ServerError("Database unavailable")
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise ValidationError("Invalid id format", code="INVALID_ID")


def create_document(db: Database, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(data)
    stamp = now()
    doc.setdefault("createdAt", stamp)
    doc.setdefault("updatedAt", stamp)
    res = db[collection].insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


def get_documents(db: Database, collection: str, filter_dict: Optional[Dict[str, Any]] = None, sort=None) -> List[Dict[str, Any]]:
    cursor = db[collection].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)


def plain(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            # pymongo hands back naive UTC datetimes
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [plain(v) for v in value]
    return value


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        d[k] = plain(v)
    return d
