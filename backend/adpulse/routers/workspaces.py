"""Workspace management endpoints.

WHAT:
    POST /api/workspaces                 -> create (caller becomes Owner)
    GET  /api/workspaces                 -> caller's workspaces + integrations
    GET  /api/workspaces/{workspace_id}  -> one workspace (members only, else 404)
    PUT  /api/workspaces/{workspace_id}  -> rename (Owner/Admin only)

REFERENCES:
    - adpulse/services/workspace_service.py
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..deps import get_current_user
from ..models import User
from ..services import workspace_service


router = APIRouter(
    prefix="/api/workspaces",
    tags=["Workspaces"],
    responses={
        400: {"model": schemas.ErrorResponse, "description": "Bad Request"},
        401: {"model": schemas.ErrorResponse, "description": "Unauthorized"},
        403: {"model": schemas.ErrorResponse, "description": "Forbidden"},
        404: {"model": schemas.ErrorResponse, "description": "Not Found"},
    },
)


def _summary(item) -> schemas.WorkspaceSummaryOut:
    return schemas.WorkspaceSummaryOut(
        id=item["id"],
        name=item["name"],
        role=item["role"],
        created_at=item["created_at"],
        integrations=[schemas.WorkspaceIntegrationOut.model_validate(i) for i in item["integrations"]],
    )


@router.post(
    "",
    response_model=schemas.WorkspaceOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create workspace",
)
def create_workspace(
    payload: schemas.WorkspaceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    workspace = workspace_service.create_workspace(db, current_user, payload.name)
    return schemas.WorkspaceOut.model_validate(workspace)


@router.get("", response_model=schemas.WorkspaceListResponse, summary="List workspaces")
def list_workspaces(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List every workspace the caller is a member of, with its role and integrations."""
    items = workspace_service.list_user_workspaces(db, current_user)
    return schemas.WorkspaceListResponse(workspaces=[_summary(item) for item in items])


@router.get("/{workspace_id}", response_model=schemas.WorkspaceDetailOut, summary="Get workspace")
def get_workspace(
    workspace_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    detail = workspace_service.get_workspace(db, current_user, workspace_id)
    return schemas.WorkspaceDetailOut(
        id=detail["id"],
        name=detail["name"],
        role=detail["role"],
        created_at=detail["created_at"],
        members=[schemas.WorkspaceMemberOut(**member) for member in detail["members"]],
        integrations=[schemas.IntegrationOut.model_validate(i) for i in detail["integrations"]],
    )


@router.put("/{workspace_id}", response_model=schemas.WorkspaceOut, summary="Update workspace")
def update_workspace(
    workspace_id: UUID,
    payload: schemas.WorkspaceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    workspace = workspace_service.update_workspace(db, current_user, workspace_id, payload.name)
    return schemas.WorkspaceOut.model_validate(workspace)
