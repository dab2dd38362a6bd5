"""Current-user endpoints.

POST /api/auth/sync creates (or refreshes) the local user for a verified token
and must be called once before any workspace-scoped endpoint. GET /api/auth/me
returns the user and their workspace memberships.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..deps import get_current_user, get_token_claims
from ..models import User
from ..services import workspace_service

router = APIRouter(
    prefix="/api/auth",
    tags=["Auth"],
    responses={
        400: {"model": schemas.ErrorResponse, "description": "Bad Request"},
        401: {"model": schemas.ErrorResponse, "description": "Unauthorized"},
    },
)


@router.post("/sync", response_model=schemas.UserOut, summary="Sync current user")
def sync_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
):
    return schemas.UserOut.model_validate(workspace_service.sync_user(db, claims))


@router.get("/me", response_model=schemas.CurrentUserOut, summary="Get current user")
def get_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return schemas.CurrentUserOut(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        workspaces=[
            schemas.UserWorkspaceOut(**item)
            for item in workspace_service.user_workspaces(db, current_user)
        ],
    )
