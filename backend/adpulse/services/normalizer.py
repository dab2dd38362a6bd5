"""Normalizer: persist fetched platform data as Campaign and DailyMetric rows.

WHAT:
    `normalize_and_store(workspace_id, platform_data)`
        1. Upsert every campaign by (workspace, platform, platform_id),
           overwriting name/status/objective.
        2. For every metric row, resolve its campaign, compute derived ratios
           and upsert the DailyMetric keyed by
           (workspace, platform, date, campaign, ad_set_id=NULL, ad_id=NULL).

WHY:
    - Campaigns and metrics come from separate, non-transactional API calls, so
      a metric row can reference a campaign the first call did not return. Such
      rows are skipped with a warning; the batch continues.
    - Metric writes overwrite instead of incrementing. Providers report
      authoritative per-day totals and the last days are re-fetched each cycle.
    - The metric key has nullable columns, and NULL never equals NULL in a
      unique index, so this uses an explicit lookup then create-or-update.

REFERENCES:
    - adpulse/services/metrics_engine.py (derived ratios)
    - adpulse/models.py (Campaign, DailyMetric)
"""

from __future__ import annotations

import logging
from typing import Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from adpulse.errors import OrphanRowWarning
from adpulse.models import Campaign, DailyMetric, PlatformEnum
from adpulse.services.metrics_engine import derived_metrics
from adpulse.services.platform_data import CampaignRecord, MetricRecord, PlatformData

logger = logging.getLogger(__name__)


class Normalizer:
    """Platform-agnostic persistence; subclasses only pin `platform`."""

    platform: PlatformEnum

    def __init__(self, db: Session):
        self._db = db

    def normalize_and_store(self, workspace_id: UUID, platform_data: PlatformData) -> None:
        created, updated = 0, 0
        for record in platform_data.campaigns:
            _, was_created = self._upsert_campaign(workspace_id, record)
            if was_created:
                created += 1
            else:
                updated += 1
            self._db.flush()

        stored, skipped = 0, 0
        for metric in platform_data.metrics:
            try:
                campaign = self._resolve_campaign(workspace_id, metric.campaign_id, metric)
            except OrphanRowWarning as warning:
                logger.warning(f"[NORMALIZER] Skipping orphan metric row: {warning}")
                skipped += 1
                continue
            self._upsert_daily_metric(workspace_id, campaign, metric)
            stored += 1

        self._db.commit()
        logger.info(
            f"[NORMALIZER] {self.platform.value} workspace={workspace_id} campaigns created={created} "
            f"updated={updated} metrics stored={stored} skipped={skipped}"
        )

    # --- Campaigns -----------------------------------------------------
    def _find_campaign(self, workspace_id: UUID, platform_id: str):
        return (
            self._db.query(Campaign)
            .filter(
                Campaign.workspace_id == workspace_id,
                Campaign.platform == self.platform,
                Campaign.platform_id == platform_id,
            )
            .first()
        )

    def _upsert_campaign(self, workspace_id: UUID, record: CampaignRecord) -> Tuple[Campaign, bool]:
        campaign = self._find_campaign(workspace_id, record.id)
        if campaign:
            campaign.name = record.name
            campaign.status = record.status
            campaign.objective = record.objective
            return campaign, False

        campaign = Campaign(
            workspace_id=workspace_id,
            platform=self.platform,
            platform_id=record.id,
            name=record.name,
            status=record.status,
            objective=record.objective,
        )
        self._db.add(campaign)
        return campaign, True

    def _resolve_campaign(self, workspace_id: UUID, platform_id: str, metric: MetricRecord) -> Campaign:
        campaign = self._find_campaign(workspace_id, platform_id)
        if not campaign:
            raise OrphanRowWarning(self.platform.value, platform_id, metric.date)
        return campaign

    # --- Daily metrics -------------------------------------------------
    def _upsert_daily_metric(self, workspace_id: UUID, campaign: Campaign, metric: MetricRecord) -> DailyMetric:
        row = (
            self._db.query(DailyMetric)
            .filter(
                DailyMetric.workspace_id == workspace_id,
                DailyMetric.platform == self.platform,
                DailyMetric.date == metric.date,
                DailyMetric.campaign_id == campaign.id,
                DailyMetric.ad_set_id.is_(None),
                DailyMetric.ad_id.is_(None),
            )
            .first()
        )
        if row is None:
            row = DailyMetric(
                workspace_id=workspace_id,
                platform=self.platform,
                date=metric.date,
                campaign_id=campaign.id,
                ad_set_id=None,
                ad_id=None,
            )
            self._db.add(row)

        ratios = derived_metrics(
            metric.impressions, metric.clicks, metric.spend, metric.conversions, metric.conversion_value
        )
        row.impressions = metric.impressions
        row.clicks = metric.clicks
        row.spend = metric.spend
        row.conversions = metric.conversions
        row.conversion_value = metric.conversion_value
        row.ctr = ratios["ctr"]
        row.cpc = ratios["cpc"]
        row.cpa = ratios["cpa"]
        row.roas = ratios["roas"]
        # autoflush is off; later lookups in this batch must see this row.
        self._db.flush()
        return row


class GoogleNormalizer(Normalizer):
    platform = PlatformEnum.google


class MetaNormalizer(Normalizer):
    platform = PlatformEnum.meta
