"""OAuth connection endpoints for Google Ads and Meta.

WHAT:
    /api/oauth/{platform}/authorize  -> consent URL for the selected workspace
    /api/oauth/{platform}/callback   -> code exchange + integration upsert, then
                                       redirect back to the dashboard
    /api/oauth/integrations          -> list / soft-disconnect integrations

WHY:
    Callbacks are browser navigations, so failures redirect to the dashboard
    with an `error` flag instead of returning JSON.

REFERENCES:
    - adpulse/services/oauth_service.py
"""

import logging
from typing import Optional
from urllib.parse import urlencode
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_context, require_workspace
from ..errors import AppError
from ..schemas import (
    AuthorizeUrlResponse,
    ErrorResponse,
    IntegrationListResponse,
    IntegrationOut,
    MessageResponse,
)
from ..services import oauth_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/oauth",
    tags=["OAuth"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        403: {"model": ErrorResponse, "description": "Forbidden"},
        404: {"model": ErrorResponse, "description": "Not Found"},
    },
)


def _integrations_redirect(context, **params) -> RedirectResponse:
    url = f"{context.settings.FRONTEND_URL}/dashboard/integrations?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=302)


def _complete(complete, platform: str, db: Session, context, code, state, error) -> RedirectResponse:
    if error:
        logger.error(f"[OAUTH] {platform} consent returned error: {error}")
        return _integrations_redirect(context, error=error)
    try:
        complete(db, context, code, state)
    except AppError as exc:
        db.rollback()
        logger.error(f"[OAUTH] {platform} callback failed: {exc.message}")
        return _integrations_redirect(context, error=exc.message)
    return _integrations_redirect(context, success=platform)


# --- Google ------------------------------------------------------------

@router.get("/google/authorize", response_model=AuthorizeUrlResponse)
def google_authorize(
    workspace_id: UUID = Depends(require_workspace),
    context=Depends(get_context),
):
    """Return the Google consent URL (adwords + email scopes, offline access)."""
    return {"url": oauth_service.build_google_authorize_url(context.settings, workspace_id)}


@router.get("/google/callback")
def google_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    context=Depends(get_context),
):
    return _complete(oauth_service.complete_google_oauth, "google", db, context, code, state, error)


# --- Meta --------------------------------------------------------------

@router.get("/meta/authorize", response_model=AuthorizeUrlResponse)
def meta_authorize(
    workspace_id: UUID = Depends(require_workspace),
    context=Depends(get_context),
):
    return {"url": oauth_service.build_meta_authorize_url(context.settings, workspace_id)}


@router.get("/meta/callback")
def meta_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    context=Depends(get_context),
):
    return _complete(oauth_service.complete_meta_oauth, "meta", db, context, code, state, error)


# --- Integrations ------------------------------------------------------

@router.get("/integrations", response_model=IntegrationListResponse)
def list_integrations(
    workspace_id: UUID = Depends(require_workspace),
    db: Session = Depends(get_db),
):
    integrations = oauth_service.list_integrations(db, workspace_id)
    return IntegrationListResponse(
        integrations=[IntegrationOut.model_validate(item) for item in integrations]
    )


@router.delete("/integrations/{integration_id}", response_model=MessageResponse)
def disconnect_integration(
    integration_id: UUID,
    workspace_id: UUID = Depends(require_workspace),
    db: Session = Depends(get_db),
):
    oauth_service.disconnect_integration(db, workspace_id, integration_id)
    return {"message": "Integration disconnected"}
