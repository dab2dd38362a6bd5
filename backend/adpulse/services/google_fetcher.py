"""Google Ads fetcher: GAQL rows to campaign and metric records.

Spend arrives as `costMicros` (currency micro-units, int64 as string) and is
divided by 1,000,000. Conversions and conversion value are direct fields.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict
from uuid import UUID

from adpulse.models import PlatformEnum
from adpulse.services.platform_data import (
    CampaignRecord,
    Fetcher,
    MetricRecord,
    PlatformData,
    parse_date,
    safe_decimal,
    safe_float,
    safe_int,
)

logger = logging.getLogger(__name__)

MICROS_PER_UNIT = Decimal(1_000_000)


def map_campaign_row(row: Dict[str, Any]) -> CampaignRecord:
    campaign = row.get("campaign", {})
    return CampaignRecord(
        id=str(campaign.get("id")),
        name=campaign.get("name") or "",
        status=campaign.get("status"),
        objective=campaign.get("advertisingChannelType") or "UNKNOWN",
        start_date=campaign.get("startDate"),
        end_date=campaign.get("endDate"),
    )


def map_metric_row(row: Dict[str, Any]) -> MetricRecord:
    campaign = row.get("campaign", {})
    segments = row.get("segments", {})
    metrics = row.get("metrics", {})
    return MetricRecord(
        campaign_id=str(campaign.get("id")),
        date=parse_date(segments.get("date")),
        impressions=safe_int(metrics.get("impressions")),
        clicks=safe_int(metrics.get("clicks")),
        spend=safe_decimal(metrics.get("costMicros")) / MICROS_PER_UNIT,
        conversions=safe_float(metrics.get("conversions")),
        conversion_value=safe_decimal(metrics.get("conversionsValue")),
    )


class GoogleFetcher(Fetcher):
    platform = PlatformEnum.google

    @staticmethod
    def format_account_id(external_account_id: str) -> str:
        """Customer ids are digits only ("123-456-7890" -> "1234567890")."""
        return re.sub(r"\D", "", external_account_id or "")

    def fetch_campaign_data(
        self,
        integration_id: UUID,
        account_id: str,
        start_date: date,
        end_date: date,
    ) -> PlatformData:
        client = self._client_factory(integration_id)

        campaigns = [map_campaign_row(row) for row in client.get_campaigns(account_id)]
        metrics = [
            map_metric_row(row)
            for row in client.get_campaign_metrics(account_id, start_date, end_date)
        ]

        logger.info(
            f"[GOOGLE_FETCH] customer={account_id} campaigns={len(campaigns)} "
            f"metric_rows={len(metrics)} window={start_date}..{end_date}"
        )
        return PlatformData(campaigns=campaigns, metrics=metrics)
