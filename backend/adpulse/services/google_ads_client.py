"""Google Ads REST client.

WHAT:
    Thin wrapper over the Google Ads REST interface (`googleAds:search`) with
    GAQL builders for the campaign list and the daily campaign metrics report.

WHY:
    The fetcher only needs two reports plus the accessible-customer listing
    used when connecting. REST keeps the client on the shared httpx stack.

NOTES:
    - REST payloads are camelCase (`costMicros`, `advertisingChannelType`) and
      int64 fields arrive as strings. Interpretation happens in the fetcher.
    - Search results are paged; `search()` follows `nextPageToken`.

REFERENCES:
    - adpulse/services/google_fetcher.py
    - https://developers.google.com/google-ads/api/rest/reference/rest
    - https://developers.google.com/google-ads/api/docs/query/overview
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Tuple

from adpulse.models import PlatformEnum
from adpulse.services.platform_client import PlatformClient

logger = logging.getLogger(__name__)

GOOGLE_ADS_BASE_URL = "https://googleads.googleapis.com"


def build_campaigns_query() -> str:
    return (
        "SELECT campaign.id, campaign.name, campaign.status, "
        "campaign.advertising_channel_type, campaign.start_date, campaign.end_date "
        "FROM campaign "
        "WHERE campaign.status != 'REMOVED'"
    )


def build_campaign_metrics_query(start_date: date, end_date: date) -> str:
    return (
        "SELECT campaign.id, campaign.name, segments.date, "
        "metrics.impressions, metrics.clicks, metrics.cost_micros, "
        "metrics.conversions, metrics.conversions_value "
        "FROM campaign "
        f"WHERE segments.date BETWEEN '{start_date.isoformat()}' AND '{end_date.isoformat()}' "
        "AND campaign.status != 'REMOVED'"
    )


class GoogleAdsClient(PlatformClient):
    """Bearer token + developer-token header against a versioned base URL."""

    platform = PlatformEnum.google
    log_tag = "GOOGLE_ADS"

    def _prepare(self, access_token: str, endpoint: str, params: Dict[str, Any]) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        settings = self._settings
        headers = {
            "Authorization": f"Bearer {access_token}",
            "developer-token": settings.GOOGLE_DEVELOPER_TOKEN,
            "Content-Type": "application/json",
        }
        if settings.GOOGLE_LOGIN_CUSTOMER_ID:
            headers["login-customer-id"] = settings.GOOGLE_LOGIN_CUSTOMER_ID
        url = f"{GOOGLE_ADS_BASE_URL}/{settings.GOOGLE_ADS_API_VERSION}{endpoint}"
        return url, headers, params

    # --- Queries -------------------------------------------------------
    def search(self, customer_id: str, query: str) -> List[Dict[str, Any]]:
        """Run a GAQL query and return every result row across pages."""
        rows: List[Dict[str, Any]] = []
        page_token = None
        while True:
            body: Dict[str, Any] = {"query": query}
            if page_token:
                body["pageToken"] = page_token
            response = self.request(
                f"/customers/{customer_id}/googleAds:search", method="POST", json_body=body
            )
            rows.extend(response.get("results", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        logger.debug(f"[GOOGLE_ADS] Search on {customer_id} returned {len(rows)} rows")
        return rows

    def list_accessible_customers(self) -> List[str]:
        """Return customer ids (digits) the token can access."""
        response = self.request("/customers:listAccessibleCustomers")
        return [name.split("/")[-1] for name in response.get("resourceNames", [])]

    def get_campaigns(self, customer_id: str) -> List[Dict[str, Any]]:
        return self.search(customer_id, build_campaigns_query())

    def get_campaign_metrics(self, customer_id: str, start_date: date, end_date: date) -> List[Dict[str, Any]]:
        return self.search(customer_id, build_campaign_metrics_query(start_date, end_date))
