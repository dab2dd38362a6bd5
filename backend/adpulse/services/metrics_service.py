"""Read-side metrics aggregation for the dashboard.

WHAT:
    - `get_summary`: workspace totals plus live CTR/CPC/CPA/ROAS.
    - `get_campaign_breakdown`: one entry per campaign with the same totals.
    - `get_daily_trends`: per-date totals ascending, with CTR and CPC.

WHY:
    Stored per-row ratios cannot be summed; aggregate ratios are recomputed
    from summed counters with the same formulas the normalizers use.

REFERENCES:
    - adpulse/routers/metrics.py
    - adpulse/services/insights_service.py (reuses get_summary / platform totals)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from adpulse.models import Campaign, DailyMetric, PlatformEnum
from adpulse.services.metrics_engine import calculate_cpc, calculate_ctr, derived_metrics


@dataclass(frozen=True)
class MetricFilters:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    platform: Optional[PlatformEnum] = None


def _sum_columns():
    return (
        func.coalesce(func.sum(DailyMetric.impressions), 0).label("impressions"),
        func.coalesce(func.sum(DailyMetric.clicks), 0).label("clicks"),
        func.coalesce(func.sum(DailyMetric.spend), 0).label("spend"),
        func.coalesce(func.sum(DailyMetric.conversions), 0).label("conversions"),
        func.coalesce(func.sum(DailyMetric.conversion_value), 0).label("conversion_value"),
    )


def _apply_filters(query, workspace_id: UUID, filters: MetricFilters):
    query = query.filter(DailyMetric.workspace_id == workspace_id)
    if filters.start_date:
        query = query.filter(DailyMetric.date >= filters.start_date)
    if filters.end_date:
        query = query.filter(DailyMetric.date <= filters.end_date)
    if filters.platform:
        query = query.filter(DailyMetric.platform == filters.platform)
    return query


def _totals(row) -> Dict[str, Any]:
    totals = {
        "impressions": int(row.impressions or 0),
        "clicks": int(row.clicks or 0),
        "spend": float(row.spend or 0),
        "conversions": float(row.conversions or 0),
        "conversion_value": float(row.conversion_value or 0),
    }
    totals.update(derived_metrics(
        totals["impressions"], totals["clicks"], totals["spend"],
        totals["conversions"], totals["conversion_value"],
    ))
    return totals


def get_summary(db: Session, workspace_id: UUID, filters: MetricFilters = MetricFilters()) -> Dict[str, Any]:
    row = _apply_filters(db.query(*_sum_columns()), workspace_id, filters).one()
    return _totals(row)


def get_platform_totals(db: Session, workspace_id: UUID, filters: MetricFilters = MetricFilters()) -> List[Dict[str, Any]]:
    """Spend and conversions per platform, ordered by platform name."""
    rows = (
        _apply_filters(db.query(DailyMetric.platform, *_sum_columns()), workspace_id, filters)
        .group_by(DailyMetric.platform)
        .all()
    )
    result = [{"platform": row.platform, **_totals(row)} for row in rows]
    return sorted(result, key=lambda item: item["platform"].value)


def get_campaign_breakdown(db: Session, workspace_id: UUID, filters: MetricFilters = MetricFilters()) -> List[Dict[str, Any]]:
    """Every campaign of the workspace (and platform) with totals for the window.

    Campaigns without metrics in the window are included with zero totals.
    """
    sums = (
        _apply_filters(db.query(DailyMetric.campaign_id, *_sum_columns()), workspace_id, filters)
        .group_by(DailyMetric.campaign_id)
        .subquery()
    )

    query = (
        db.query(
            Campaign,
            sums.c.impressions,
            sums.c.clicks,
            sums.c.spend,
            sums.c.conversions,
            sums.c.conversion_value,
        )
        .outerjoin(sums, sums.c.campaign_id == Campaign.id)
        .filter(Campaign.workspace_id == workspace_id)
    )
    if filters.platform:
        query = query.filter(Campaign.platform == filters.platform)

    breakdown = []
    for row in query.order_by(Campaign.name).all():
        campaign = row[0]
        breakdown.append({
            "id": campaign.id,
            "platform_id": campaign.platform_id,
            "name": campaign.name,
            "platform": campaign.platform,
            "status": campaign.status,
            "objective": campaign.objective,
            **_totals(row),
        })
    return breakdown


def get_daily_trends(db: Session, workspace_id: UUID, filters: MetricFilters = MetricFilters()) -> List[Dict[str, Any]]:
    rows = (
        _apply_filters(db.query(DailyMetric.date, *_sum_columns()), workspace_id, filters)
        .group_by(DailyMetric.date)
        .order_by(DailyMetric.date.asc())
        .all()
    )
    trends = []
    for row in rows:
        impressions = int(row.impressions or 0)
        clicks = int(row.clicks or 0)
        spend = float(row.spend or 0)
        trends.append({
            "date": row.date,
            "impressions": impressions,
            "clicks": clicks,
            "spend": spend,
            "conversions": float(row.conversions or 0),
            "conversion_value": float(row.conversion_value or 0),
            "ctr": calculate_ctr(clicks, impressions),
            "cpc": calculate_cpc(spend, clicks),
        })
    return trends
