"""Metrics read endpoints consumed by the dashboard.

All three share the same filters: optional `startDate`/`endDate` (inclusive)
and optional `platform`, scoped to the caller's workspace.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import require_workspace
from ..models import PlatformEnum
from ..schemas import CampaignMetricsResponse, ErrorResponse, MetricsSummaryOut, TrendsResponse
from ..services import metrics_service
from ..services.metrics_service import MetricFilters

router = APIRouter(
    prefix="/api/metrics",
    tags=["Metrics"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        403: {"model": ErrorResponse, "description": "Forbidden"},
    },
)


def get_filters(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    platform: Optional[PlatformEnum] = Query(None),
) -> MetricFilters:
    return MetricFilters(start_date=start_date, end_date=end_date, platform=platform)


@router.get("/summary", response_model=MetricsSummaryOut)
def get_metrics_summary(
    workspace_id: UUID = Depends(require_workspace),
    filters: MetricFilters = Depends(get_filters),
    db: Session = Depends(get_db),
):
    return metrics_service.get_summary(db, workspace_id, filters)


@router.get("/campaigns", response_model=CampaignMetricsResponse)
def get_campaign_metrics(
    workspace_id: UUID = Depends(require_workspace),
    filters: MetricFilters = Depends(get_filters),
    db: Session = Depends(get_db),
):
    return {"campaigns": metrics_service.get_campaign_breakdown(db, workspace_id, filters)}


@router.get("/trends", response_model=TrendsResponse)
def get_metric_trends(
    workspace_id: UUID = Depends(require_workspace),
    filters: MetricFilters = Depends(get_filters),
    db: Session = Depends(get_db),
):
    return {"trends": metrics_service.get_daily_trends(db, workspace_id, filters)}
