"""Unit tests for the Google Ads and Meta REST clients.

WHAT:
    Retry/backoff behavior, auth placement, GAQL bodies and pagination, all
    against an httpx MockTransport.

REFERENCES:
    adpulse/services/platform_client.py
    adpulse/services/google_ads_client.py
    adpulse/services/meta_ads_client.py
"""

import json
from datetime import date

import pytest

from adpulse.errors import UpstreamRequestError
from adpulse.services.google_ads_client import GoogleAdsClient, build_campaign_metrics_query
from adpulse.services.meta_ads_client import MetaAdsClient
from adpulse.services.token_service import StaticTokenSource

SEARCH_URL = "https://googleads.googleapis.com/v15/customers/123/googleAds:search"
META_CAMPAIGNS_URL = "https://graph.facebook.com/v18.0/act_42/campaigns"


@pytest.fixture
def google_client(context):
    return GoogleAdsClient(StaticTokenSource("g-token"), None, context)


@pytest.fixture
def meta_client(context):
    return MetaAdsClient(StaticTokenSource("m-token"), None, context)


# --- Retry policy ------------------------------------------------------

def test_request_retries_with_exponential_backoff_then_succeeds(google_client, upstream, sleep_recorder):
    upstream.add("POST", SEARCH_URL, status=500, json={"error": "boom"})
    upstream.add("POST", SEARCH_URL, status=503, json={"error": "busy"})
    upstream.add("POST", SEARCH_URL, json={"results": [{"campaign": {"id": "1"}}]})

    rows = google_client.search("123", "SELECT campaign.id FROM campaign")

    assert rows == [{"campaign": {"id": "1"}}]
    assert len(upstream.calls("POST", SEARCH_URL)) == 3
    assert sleep_recorder.calls == [1, 2]


def test_request_gives_up_after_three_attempts(google_client, upstream, sleep_recorder):
    upstream.add("POST", SEARCH_URL, status=500, json={"error": "down"})

    with pytest.raises(UpstreamRequestError) as excinfo:
        google_client.search("123", "SELECT campaign.id FROM campaign")

    assert excinfo.value.upstream_status == 500
    assert len(upstream.calls("POST", SEARCH_URL)) == 3
    assert sleep_recorder.calls == [1, 2]


def test_client_errors_are_retried_too(meta_client, upstream, sleep_recorder):
    # A permanent 4xx costs three requests and 3s of backoff.
    upstream.add("GET", META_CAMPAIGNS_URL, status=400, json={"error": {"message": "bad field"}})

    with pytest.raises(UpstreamRequestError) as excinfo:
        meta_client.get_campaigns("act_42")

    assert excinfo.value.upstream_status == 400
    assert len(upstream.calls("GET", META_CAMPAIGNS_URL)) == 3
    assert sleep_recorder.calls == [1, 2]


def test_token_requested_once_per_logical_request(context, upstream):
    class CountingSource:
        calls = 0

        def get_valid_access_token(self, integration_id):
            CountingSource.calls += 1
            return "t"

    upstream.add("POST", SEARCH_URL, status=500)
    upstream.add("POST", SEARCH_URL, json={"results": []})

    GoogleAdsClient(CountingSource(), "integration-1", context).search("123", "q")

    assert CountingSource.calls == 1


# --- Google Ads --------------------------------------------------------

def test_google_request_headers(google_client, upstream):
    upstream.add("POST", SEARCH_URL, json={"results": []})

    google_client.search("123", "SELECT campaign.id FROM campaign")

    request = upstream.requests[0]
    assert request.headers["Authorization"] == "Bearer g-token"
    assert request.headers["developer-token"] == "dev-token"
    assert "login-customer-id" not in request.headers


def test_google_search_follows_page_tokens(google_client, upstream):
    upstream.add("POST", SEARCH_URL, json={"results": [{"n": 1}], "nextPageToken": "page-2"})
    upstream.add("POST", SEARCH_URL, json={"results": [{"n": 2}]})

    rows = google_client.search("123", "SELECT campaign.id FROM campaign")

    assert rows == [{"n": 1}, {"n": 2}]
    bodies = [json.loads(r.content) for r in upstream.requests]
    assert "pageToken" not in bodies[0]
    assert bodies[1]["pageToken"] == "page-2"


def test_google_list_accessible_customers(google_client, upstream):
    upstream.add(
        "GET",
        "https://googleads.googleapis.com/v15/customers:listAccessibleCustomers",
        json={"resourceNames": ["customers/111", "customers/222"]},
    )

    assert google_client.list_accessible_customers() == ["111", "222"]


def test_campaign_metrics_query_uses_inclusive_window():
    query = build_campaign_metrics_query(date(2024, 10, 1), date(2024, 10, 8))

    assert "segments.date BETWEEN '2024-10-01' AND '2024-10-08'" in query
    assert "metrics.cost_micros" in query
    assert "campaign.status != 'REMOVED'" in query


# --- Meta --------------------------------------------------------------

def test_meta_token_sent_as_query_param(meta_client, upstream):
    upstream.add("GET", META_CAMPAIGNS_URL, json={"data": [{"id": "c1"}]})

    assert meta_client.get_campaigns("act_42") == [{"id": "c1"}]

    request = upstream.requests[0]
    assert request.url.params["access_token"] == "m-token"
    assert "Authorization" not in request.headers


def test_meta_get_all_follows_cursors(meta_client, upstream):
    upstream.add(
        "GET", META_CAMPAIGNS_URL,
        json={"data": [{"id": "c1"}], "paging": {"cursors": {"after": "CUR"}, "next": "https://next"}},
    )
    upstream.add(
        "GET", META_CAMPAIGNS_URL,
        json={"data": [{"id": "c2"}], "paging": {"cursors": {"after": "END"}}},
    )

    rows = meta_client.get_campaigns("act_42")

    assert [r["id"] for r in rows] == ["c1", "c2"]
    assert "after" not in upstream.requests[0].url.params
    assert upstream.requests[1].url.params["after"] == "CUR"


def test_meta_insights_request_params(meta_client, upstream):
    url = "https://graph.facebook.com/v18.0/act_42/insights"
    upstream.add("GET", url, json={"data": []})

    meta_client.get_campaign_insights("act_42", date(2024, 10, 1), date(2024, 10, 8))

    params = upstream.requests[0].url.params
    assert params["level"] == "campaign"
    assert params["time_increment"] == "1"
    assert json.loads(params["time_range"]) == {"since": "2024-10-01", "until": "2024-10-08"}
