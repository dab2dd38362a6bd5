"""Meta fetcher: Graph API campaigns and insights to campaign and metric records.

WHAT:
    - Spend is a decimal string in account currency; parsed without scaling.
    - Conversions are the sum of `actions` entries whose type is in
      `CONVERSION_ACTION_TYPES`.
    - Conversion value comes from the `purchase` entry of `action_values` only;
      other action types carry no meaningful monetary value.

REFERENCES:
    - adpulse/services/meta_ads_client.py
    - https://developers.facebook.com/docs/marketing-api/reference/ads-action-stats
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional
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

CONVERSION_ACTION_TYPES = frozenset({"purchase", "lead", "complete_registration", "add_to_cart"})
PURCHASE_ACTION_TYPE = "purchase"


def sum_conversions(actions: Optional[Iterable[Dict[str, Any]]]) -> float:
    return float(sum(
        safe_float(action.get("value"))
        for action in actions or []
        if action.get("action_type") in CONVERSION_ACTION_TYPES
    ))


def purchase_value(action_values: Optional[Iterable[Dict[str, Any]]]) -> Decimal:
    for action in action_values or []:
        if action.get("action_type") == PURCHASE_ACTION_TYPE:
            return safe_decimal(action.get("value"))
    return Decimal("0")


def map_campaign(raw: Dict[str, Any]) -> CampaignRecord:
    return CampaignRecord(
        id=str(raw.get("id")),
        name=raw.get("name") or "",
        status=raw.get("status"),
        objective=raw.get("objective") or "UNKNOWN",
        start_date=raw.get("start_time"),
        end_date=raw.get("stop_time"),
    )


def map_insight(raw: Dict[str, Any]) -> MetricRecord:
    return MetricRecord(
        campaign_id=str(raw.get("campaign_id")),
        date=parse_date(raw.get("date_start")),
        impressions=safe_int(raw.get("impressions")),
        clicks=safe_int(raw.get("clicks")),
        spend=safe_decimal(raw.get("spend")),
        conversions=sum_conversions(raw.get("actions")),
        conversion_value=purchase_value(raw.get("action_values")),
    )


class MetaFetcher(Fetcher):
    platform = PlatformEnum.meta

    @staticmethod
    def format_account_id(external_account_id: str) -> str:
        """Graph API addresses ad accounts as `act_<id>`."""
        if external_account_id.startswith("act_"):
            return external_account_id
        return f"act_{external_account_id}"

    def fetch_campaign_data(
        self,
        integration_id: UUID,
        account_id: str,
        start_date: date,
        end_date: date,
    ) -> PlatformData:
        client = self._client_factory(integration_id)

        campaigns = [map_campaign(raw) for raw in client.get_campaigns(account_id)]
        metrics = [
            map_insight(raw)
            for raw in client.get_campaign_insights(account_id, start_date, end_date)
        ]

        logger.info(
            f"[META_FETCH] account={account_id} campaigns={len(campaigns)} "
            f"metric_rows={len(metrics)} window={start_date}..{end_date}"
        )
        return PlatformData(campaigns=campaigns, metrics=metrics)
