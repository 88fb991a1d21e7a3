"""
MongoDB access for the Finaxial API

The Database handle owns one MongoClient for the life of the application.
It is created in the app lifespan and handed to route handlers through the
get_db dependency, so tests can swap in an in-memory client.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import ConnectionFailure

logger = logging.getLogger(__name__)

USERS = "users"
WORKSPACES = "workspaces"
ACTIVITIES = "useractivities"
VECTOR_DOCUMENTS = "vectordocuments"


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the way pymongo hands dates back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value: Any) -> ObjectId:
    """Coerce a string id into an ObjectId, raising ValueError when malformed."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError) as e:
        raise ValueError(f"Invalid id: {value!r}") from e


def parse_object_id(value: Any) -> Optional[ObjectId]:
    try:
        return to_object_id(value)
    except ValueError:
        return None


class Database:
    """Explicit handle on the Finaxial database."""

    def __init__(self, url: str = "", name: str = "finaxial", client: Optional[MongoClient] = None):
        self._owns_client = client is None
        self.client = client if client is not None else MongoClient(url)
        self.name = name
        self.db = self.client[name]

    def connect(self) -> "Database":
        """Validate the connection; raises ValueError when the server is unreachable."""
        try:
            self.client.admin.command("ping")
        except ConnectionFailure as e:
            raise ValueError(f"Cannot connect to MongoDB: {e}")
        logger.info(f"MongoDB connected: {self.name}")
        return self

    def ensure_indexes(self):
        self.db[USERS].create_index([("username", ASCENDING)], unique=True, name="username_unique")
        self.db[USERS].create_index([("email", ASCENDING)], unique=True, name="email_unique")
        self.db[WORKSPACES].create_index([("owner", ASCENDING)], name="owner_idx")
        self.db[WORKSPACES].create_index([("members", ASCENDING)], name="members_idx")
        self.db[ACTIVITIES].create_index(
            [("user", ASCENDING), ("activityType", ASCENDING)], name="user_activity_type"
        )
        self.db[ACTIVITIES].create_index([("workspace", ASCENDING)], name="workspace_idx")
        self.db[ACTIVITIES].create_index([("createdAt", DESCENDING)], name="created_desc")

    def close(self):
        if self._owns_client:
            self.client.close()
            logger.info("MongoDB connection closed")

    def __getitem__(self, collection_name: str):
        return self.db[collection_name]

    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document and return its id as a string.

    Pydantic models are dumped by alias so stored field names match the
    camelCase layout the web client reads.
    """
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True, exclude_none=True)
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict.setdefault("createdAt", now)
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
    projection: Optional[Dict[str, int]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize_doc(value: Any) -> Any:
    """Make a stored document JSON friendly: `_id` becomes `id`, ObjectIds become strings."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize_doc(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if key == "_id":
                out["id"] = serialize_doc(item)
            else:
                out[key] = serialize_doc(item)
        return out
    return value


def get_db(request: Request) -> Database:
    return request.app.state.db
