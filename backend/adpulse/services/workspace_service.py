"""Workspace and user management.

WHAT:
    - `sync_user`: create or refresh the local user named by a verified token.
    - Create / list / get / rename workspaces for the calling user.

WHY:
    Identity is issued outside this service; the token's `sub` is the user id.
    A user row must exist (via `sync_user`) before any workspace-scoped call,
    and the creator of a workspace is always its Owner.

ACCESS RULES:
    - get: any member; non-members get 404 so workspace ids are not leaked.
    - rename: Owner or Admin; anyone else gets 403.

REFERENCES:
    - adpulse/routers/workspaces.py
    - adpulse/routers/auth.py
    - adpulse/deps.py (get_token_claims, get_current_user)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from adpulse.errors import BadRequestError, NotFoundError, PermissionDeniedError
from adpulse.models import Integration, RoleEnum, User, Workspace, WorkspaceMember

logger = logging.getLogger(__name__)

MANAGE_ROLES = (RoleEnum.owner, RoleEnum.admin)


# =============================================================================
# USERS
# =============================================================================

def sync_user(db: Session, claims: Dict[str, Any]) -> User:
    """Create the user for a verified token, or refresh its email/name.

    Args:
        claims: decoded JWT; `sub` (user id) and `email` are required,
            `name` falls back to the email.

    Raises:
        BadRequestError: the token carries no email.
    """
    email = (claims.get("email") or "").strip()
    if not email:
        raise BadRequestError("Token has no email claim")
    name = (claims.get("name") or "").strip() or email

    user_id = UUID(claims["sub"])
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email, name=name)
        db.add(user)
        logger.info(f"[USERS] Created user {email}")
    else:
        user.email = email
        user.name = name
    db.commit()
    db.refresh(user)
    return user


def user_workspaces(db: Session, user: User) -> List[Dict[str, Any]]:
    """Workspaces the user belongs to, with their role, oldest first."""
    return [
        {"id": m.workspace.id, "name": m.workspace.name, "role": m.role}
        for m in _memberships(db, user)
    ]


# =============================================================================
# WORKSPACES
# =============================================================================

def create_workspace(db: Session, user: User, name: str) -> Workspace:
    """Create a workspace with `user` as its Owner."""
    workspace = Workspace(name=_clean_name(name))
    db.add(workspace)
    db.flush()

    db.add(WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role=RoleEnum.owner))
    db.commit()
    db.refresh(workspace)
    logger.info(f"[WORKSPACES] {user.email} created workspace {workspace.id}")
    return workspace


def list_user_workspaces(db: Session, user: User) -> List[Dict[str, Any]]:
    """Every workspace the user is a member of, each with its integrations."""
    memberships = _memberships(db, user)
    integrations = _integrations_by_workspace(db, [m.workspace_id for m in memberships])
    return [
        {
            "id": m.workspace.id,
            "name": m.workspace.name,
            "role": m.role,
            "created_at": m.workspace.created_at,
            "integrations": integrations.get(m.workspace_id, []),
        }
        for m in memberships
    ]


def get_workspace(db: Session, user: User, workspace_id: UUID) -> Dict[str, Any]:
    """One workspace with its members and integrations.

    Raises:
        NotFoundError: workspace missing or the user is not a member.
    """
    membership = _membership(db, user, workspace_id)
    if membership is None:
        raise NotFoundError("Workspace not found or access denied")

    workspace = membership.workspace
    members = (
        db.query(WorkspaceMember)
        .options(joinedload(WorkspaceMember.user))
        .filter(WorkspaceMember.workspace_id == workspace_id)
        .order_by(WorkspaceMember.created_at)
        .all()
    )
    return {
        "id": workspace.id,
        "name": workspace.name,
        "role": membership.role,
        "created_at": workspace.created_at,
        "members": [
            {"user_id": m.user_id, "email": m.user.email, "name": m.user.name, "role": m.role}
            for m in members
        ],
        "integrations": _integrations_by_workspace(db, [workspace_id]).get(workspace_id, []),
    }


def update_workspace(db: Session, user: User, workspace_id: UUID, name: Optional[str]) -> Workspace:
    """Rename a workspace. Only Owners and Admins may do this.

    Raises:
        PermissionDeniedError: not a member, or a member without a manage role.
    """
    membership = _membership(db, user, workspace_id)
    if membership is None or membership.role not in MANAGE_ROLES:
        raise PermissionDeniedError("Insufficient permissions")

    workspace = membership.workspace
    if name is not None:
        workspace.name = _clean_name(name)
    db.commit()
    db.refresh(workspace)
    logger.info(f"[WORKSPACES] Workspace {workspace_id} renamed by {user.email}")
    return workspace


# =============================================================================
# HELPERS
# =============================================================================

def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise BadRequestError("Workspace name is required")
    return cleaned


def _membership(db: Session, user: User, workspace_id: UUID) -> Optional[WorkspaceMember]:
    return (
        db.query(WorkspaceMember)
        .options(joinedload(WorkspaceMember.workspace))
        .filter(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.user_id == user.id)
        .first()
    )


def _memberships(db: Session, user: User) -> List[WorkspaceMember]:
    return (
        db.query(WorkspaceMember)
        .options(joinedload(WorkspaceMember.workspace))
        .filter(WorkspaceMember.user_id == user.id)
        .order_by(WorkspaceMember.created_at)
        .all()
    )


def _integrations_by_workspace(db: Session, workspace_ids: Sequence[UUID]) -> Dict[UUID, List[Integration]]:
    if not workspace_ids:
        return {}
    grouped: Dict[UUID, List[Integration]] = {}
    rows = (
        db.query(Integration)
        .filter(Integration.workspace_id.in_(workspace_ids))
        .order_by(Integration.created_at)
        .all()
    )
    for integration in rows:
        grouped.setdefault(integration.workspace_id, []).append(integration)
    return grouped
