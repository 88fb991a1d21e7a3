"""
Workspace endpoints. Every route requires an authenticated user.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ValidationError, field_validator

from auth import require_user
from database import Database, get_db, serialize_doc
from request_body import body_of
from workspace_store import WorkspaceStore, is_member, is_owner

logger = logging.getLogger(__name__)

router = APIRouter()


class WorkspaceCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    members: Optional[List[str]] = None

    @field_validator("members", mode="before")
    @classmethod
    def _single_member(cls, value):
        # a form with one member field sends a plain string
        return [value] if isinstance(value, str) else value


class InsightCreate(BaseModel):
    """Insight as posted by the client; required fields are checked by hand
    so a missing one gets the 'provide all required fields' answer."""
    fileName: Optional[str] = None
    summary: Optional[str] = None
    insights: Optional[str] = None
    recommendations: Optional[str] = None
    charts: Optional[List[Dict[str, Any]]] = None
    assistantChat: Optional[List[Dict[str, Any]]] = None
    insightCards: Optional[List[Dict[str, Any]]] = None
    rawResponse: Optional[str] = None


def get_store(db: Database = Depends(get_db)) -> WorkspaceStore:
    return WorkspaceStore(db)


def _load(store: WorkspaceStore, workspace_id: str) -> Dict[str, Any]:
    workspace = store.get(workspace_id)
    if workspace is None:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


def _invalid(e: ValueError) -> HTTPException:
    if isinstance(e, ValidationError):
        errors = e.errors()
        message = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in errors)
    else:
        message = str(e)
    return HTTPException(status_code=400, detail=message)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_workspace(
    user: Dict[str, Any] = Depends(require_user),
    body: WorkspaceCreate = Depends(body_of(WorkspaceCreate)),
    store: WorkspaceStore = Depends(get_store),
):
    try:
        workspace = store.create(body.name, user["_id"], body.description)
    except ValueError as e:
        raise _invalid(e)
    return {"success": True, "data": serialize_doc(workspace)}


@router.get("")
def get_workspaces(
    user: Dict[str, Any] = Depends(require_user),
    store: WorkspaceStore = Depends(get_store),
):
    workspaces = store.list_for_user(user["_id"])
    return {"success": True, "count": len(workspaces), "data": serialize_doc(workspaces)}


@router.get("/{workspace_id}")
def get_workspace(
    workspace_id: str,
    user: Dict[str, Any] = Depends(require_user),
    store: WorkspaceStore = Depends(get_store),
):
    workspace = _load(store, workspace_id)
    if not is_member(workspace, user["_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to access this workspace")
    return {"success": True, "data": serialize_doc(workspace)}


@router.api_route("/{workspace_id}", methods=["PUT", "PATCH"])
def update_workspace(
    workspace_id: str,
    user: Dict[str, Any] = Depends(require_user),
    body: WorkspaceUpdate = Depends(body_of(WorkspaceUpdate)),
    store: WorkspaceStore = Depends(get_store),
):
    workspace = _load(store, workspace_id)
    if not is_owner(workspace, user["_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to update this workspace")

    try:
        workspace = store.update(workspace, body.model_dump(exclude_unset=True))
    except ValueError as e:
        raise _invalid(e)
    return {"success": True, "data": serialize_doc(workspace)}


@router.delete("/{workspace_id}")
def delete_workspace(
    workspace_id: str,
    user: Dict[str, Any] = Depends(require_user),
    store: WorkspaceStore = Depends(get_store),
):
    workspace = _load(store, workspace_id)
    if not is_owner(workspace, user["_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to delete this workspace")

    store.delete(workspace["_id"])
    logger.info(f"Deleted workspace {workspace['_id']}")
    return {"success": True, "data": {}}


@router.post("/{workspace_id}/insights", status_code=status.HTTP_201_CREATED)
def save_insights(
    workspace_id: str,
    user: Dict[str, Any] = Depends(require_user),
    body: InsightCreate = Depends(body_of(InsightCreate)),
    store: WorkspaceStore = Depends(get_store),
):
    if not (body.fileName and body.summary and body.insights and body.recommendations):
        raise HTTPException(status_code=400, detail="Please provide all required fields")

    workspace = _load(store, workspace_id)
    if not is_member(workspace, user["_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to modify this workspace")

    try:
        insight = store.append_insight(workspace["_id"], body.model_dump(exclude_none=True))
    except ValueError as e:
        raise _invalid(e)
    if insight is None:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return {"success": True, "data": serialize_doc(insight)}


@router.get("/{workspace_id}/insights")
def get_insights(
    workspace_id: str,
    user: Dict[str, Any] = Depends(require_user),
    store: WorkspaceStore = Depends(get_store),
):
    workspace = _load(store, workspace_id)
    if not is_member(workspace, user["_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to access this workspace")

    insights = workspace.get("financialInsights", [])
    return {"success": True, "count": len(insights), "data": serialize_doc(insights)}
