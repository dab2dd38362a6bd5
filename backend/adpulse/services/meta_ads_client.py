"""Meta Marketing API (Graph API) client.

WHAT:
    Graph API access with the token in the query string and the API version in
    the path, plus cursor pagination for edge listings.

WHY:
    Ad accounts, campaigns and insights are all paged edges returning `data`
    with a `paging` block; `get_all()` walks them so callers see one list.

REFERENCES:
    - adpulse/services/meta_fetcher.py
    - https://developers.facebook.com/docs/graph-api/results
    - https://developers.facebook.com/docs/marketing-api/insights
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Dict, List, Tuple

from adpulse.models import PlatformEnum
from adpulse.services.platform_client import PlatformClient

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.facebook.com"

AD_ACCOUNT_FIELDS = "id,name,account_status,currency"
CAMPAIGN_FIELDS = "id,name,status,objective,start_time,stop_time"
INSIGHT_FIELDS = "campaign_id,campaign_name,date_start,impressions,clicks,spend,actions,action_values"


class MetaAdsClient(PlatformClient):
    platform = PlatformEnum.meta
    log_tag = "META_ADS"

    def _prepare(self, access_token: str, endpoint: str, params: Dict[str, Any]) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        url = f"{GRAPH_BASE_URL}/{self._settings.META_API_VERSION}{endpoint}"
        params["access_token"] = access_token
        return url, {}, params

    def get_all(self, endpoint: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Collect `data` across pages, following `paging.cursors.after`."""
        rows: List[Dict[str, Any]] = []
        params = dict(params)
        while True:
            response = self.request(endpoint, params)
            rows.extend(response.get("data", []))
            paging = response.get("paging") or {}
            after = (paging.get("cursors") or {}).get("after")
            if not paging.get("next") or not after:
                break
            params["after"] = after
        return rows

    def get_ad_accounts(self) -> List[Dict[str, Any]]:
        return self.get_all("/me/adaccounts", {"fields": AD_ACCOUNT_FIELDS})

    def get_campaigns(self, account_id: str) -> List[Dict[str, Any]]:
        """List campaigns for an `act_`-prefixed account id."""
        return self.get_all(f"/{account_id}/campaigns", {"fields": CAMPAIGN_FIELDS})

    def get_campaign_insights(self, account_id: str, start_date: date, end_date: date) -> List[Dict[str, Any]]:
        """Daily campaign-level insights for the inclusive date window."""
        params = {
            "level": "campaign",
            "time_range": json.dumps({"since": start_date.isoformat(), "until": end_date.isoformat()}),
            "time_increment": 1,
            "fields": INSIGHT_FIELDS,
        }
        rows = self.get_all(f"/{account_id}/insights", params)
        logger.debug(f"[META_ADS] {len(rows)} insight rows for {account_id}")
        return rows
