"""
Persistence for workspaces and their embedded insights

Every write goes through Workspace validation and stamps updatedAt, so a
workspace that fails the schema (e.g. a 101 character name) never reaches
the collection.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument

from database import WORKSPACES, Database, parse_object_id, to_object_id, utcnow
from schemas import Insight, Workspace

logger = logging.getLogger(__name__)


def _unique(ids: Iterable[ObjectId]) -> List[ObjectId]:
    seen = set()
    out = []
    for oid in ids:
        if oid not in seen:
            seen.add(oid)
            out.append(oid)
    return out


def is_owner(workspace: Dict[str, Any], user_id: Any) -> bool:
    return workspace.get("owner") == parse_object_id(user_id)


def is_member(workspace: Dict[str, Any], user_id: Any) -> bool:
    """Owner or listed member"""
    oid = parse_object_id(user_id)
    return workspace.get("owner") == oid or oid in workspace.get("members", [])


class WorkspaceStore:
    def __init__(self, db: Database, clock: Callable[[], datetime] = utcnow):
        self.collection = db[WORKSPACES]
        self.clock = clock

    def create(self, name: str, owner_id: Any, description: Optional[str] = None) -> Dict[str, Any]:
        now = self.clock()
        workspace = Workspace(
            name=name,
            description=description,
            owner=owner_id,
            members=[owner_id],
            created_at=now,
            updated_at=now,
        )
        document = workspace.to_mongo()
        result = self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info(f"Created workspace {result.inserted_id} for {owner_id}")
        return document

    def get(self, workspace_id: Any) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(workspace_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid})

    def list_for_user(self, user_id: Any) -> List[Dict[str, Any]]:
        oid = parse_object_id(user_id)
        cursor = self.collection.find({"$or": [{"owner": oid}, {"members": oid}]})
        return list(cursor.sort("updatedAt", DESCENDING))

    def save(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and replace a stored workspace, refreshing updatedAt."""
        workspace = Workspace.model_validate(document)
        workspace.updated_at = self.clock()
        replacement = workspace.to_mongo()
        self.collection.replace_one({"_id": document["_id"]}, replacement)
        replacement["_id"] = document["_id"]
        return replacement

    def update(self, document: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply name/description/members changes; the owner never changes.

        Raises ValueError (pydantic.ValidationError included) on bad input.
        """
        merged = dict(document)
        for key in ("name", "description"):
            if key in changes:
                merged[key] = changes[key]
        if "members" in changes and changes["members"] is not None:
            members = [to_object_id(m) for m in changes["members"]]
            merged["members"] = _unique([document["owner"]] + members)
        return self.save(merged)

    def delete(self, workspace_id: Any) -> bool:
        oid = parse_object_id(workspace_id)
        if oid is None:
            return False
        return self.collection.delete_one({"_id": oid}).deleted_count == 1

    def append_insight(self, workspace_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Push one insight onto financialInsights in a single atomic update.

        Raises pydantic.ValidationError when the insight is malformed. Returns
        None when the workspace no longer exists.
        """
        now = self.clock()
        insight = Insight(**fields, created_at=now)
        updated = self.collection.find_one_and_update(
            {"_id": parse_object_id(workspace_id)},
            {"$push": {"financialInsights": insight.to_mongo()}, "$set": {"updatedAt": now}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            return None
        return updated["financialInsights"][-1]
