"""Insights assistant endpoint."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_context, require_workspace
from ..schemas import ErrorResponse, InsightRequest, InsightResponse
from ..services.insights_service import InsightsService

router = APIRouter(
    prefix="/api/insights",
    tags=["Insights"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        403: {"model": ErrorResponse, "description": "Forbidden"},
        500: {"model": ErrorResponse, "description": "Insights not configured"},
    },
)


def get_insights_service(
    db: Session = Depends(get_db),
    context=Depends(get_context),
) -> InsightsService:
    return InsightsService(db, context.settings)


@router.post("", response_model=InsightResponse)
def generate_insight(
    payload: InsightRequest,
    workspace_id: UUID = Depends(require_workspace),
    service: InsightsService = Depends(get_insights_service),
):
    return {"insight": service.generate_insights(workspace_id, payload.query)}
