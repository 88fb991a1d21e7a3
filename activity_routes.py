"""
User activity log and dashboard statistics
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ValidationError

from auth import require_user
from database import ACTIVITIES, WORKSPACES, Database, create_document, get_db, get_documents, serialize_doc, utcnow
from request_body import body_of
from schemas import ActivityType, UserActivity

router = APIRouter()

RECENT_LIMIT = 10


class ActivityCreate(BaseModel):
    workspaceId: str
    activityType: ActivityType
    metadata: Optional[Dict[str, Any]] = None


def month_bounds(now: datetime):
    """Start of the current month and start of the previous one."""
    this_month = datetime(now.year, now.month, 1)
    if now.month == 1:
        last_month = datetime(now.year - 1, 12, 1)
    else:
        last_month = datetime(now.year, now.month - 1, 1)
    return this_month, last_month


def percent_change(current: int, previous: int) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 1)
    return 100.0 if current > 0 else 0.0


def activity_stats(db: Database, user_id: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    this_month, last_month = month_bounds(now or utcnow())
    collection = db[ACTIVITIES]

    def count(activity_type: str, created: Optional[Dict[str, Any]] = None) -> int:
        query = {"user": user_id, "activityType": activity_type}
        if created:
            query["createdAt"] = created
        return collection.count_documents(query)

    stats = {}
    for key, activity_type in (("reports", "report_generated"), ("insights", "insight_generated")):
        current = count(activity_type, {"$gte": this_month})
        previous = count(activity_type, {"$gte": last_month, "$lt": this_month})
        stats[f"{key}Generated"] = count(activity_type)
        stats[f"{key}Change"] = percent_change(current, previous)
    return stats


@router.post("", status_code=status.HTTP_201_CREATED)
def log_activity(
    user: Dict[str, Any] = Depends(require_user),
    body: ActivityCreate = Depends(body_of(ActivityCreate)),
    db: Database = Depends(get_db),
):
    try:
        activity = UserActivity(
            user=user["_id"],
            workspace=body.workspaceId,
            activity_type=body.activityType,
            metadata=body.metadata or {},
        )
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid workspace id")

    document = activity.to_mongo()
    document["_id"] = create_document(db, ACTIVITIES, document)
    return {"success": True, "data": serialize_doc(document)}


@router.get("/stats")
def get_activity_stats(
    user: Dict[str, Any] = Depends(require_user),
    db: Database = Depends(get_db),
):
    return {"success": True, "data": activity_stats(db, user["_id"])}


@router.get("/recent")
def get_recent_activities(
    user: Dict[str, Any] = Depends(require_user),
    db: Database = Depends(get_db),
):
    activities = get_documents(
        db, ACTIVITIES, {"user": user["_id"]}, limit=RECENT_LIMIT, sort=[("createdAt", -1)]
    )
    workspace_ids = list({a["workspace"] for a in activities})
    names = {
        w["_id"]: w.get("name")
        for w in get_documents(db, WORKSPACES, {"_id": {"$in": workspace_ids}}, projection={"name": 1})
    }
    for activity in activities:
        workspace_id = activity["workspace"]
        activity["workspace"] = (
            {"_id": workspace_id, "name": names[workspace_id]} if workspace_id in names else None
        )
    return {"success": True, "count": len(activities), "data": serialize_doc(activities)}
