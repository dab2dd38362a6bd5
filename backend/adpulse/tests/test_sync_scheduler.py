"""Tests for the sync scheduler: batch isolation, pacing, window, overlap, shutdown."""

import asyncio
import json
from datetime import date
from types import SimpleNamespace

import httpx
import pytest

from adpulse.errors import UpstreamRequestError
from adpulse.models import Campaign, DailyMetric, PlatformEnum
from adpulse.services import sync_scheduler as scheduler_module
from adpulse.services.normalizer import GoogleNormalizer
from adpulse.services.platform_data import CampaignRecord, PlatformData
from adpulse.services.sync_scheduler import SchedulerState, SyncScheduler

TODAY = date(2024, 10, 8)


class _RecordingFetcher:
    def __init__(self, failing=(), on_fetch=None):
        self.failing = set(failing)
        self.on_fetch = on_fetch
        self.calls = []

    @staticmethod
    def format_account_id(external_account_id):
        return external_account_id

    def fetch_campaign_data(self, integration_id, account_id, start_date, end_date):
        self.calls.append((account_id, start_date, end_date))
        if self.on_fetch:
            self.on_fetch()
        if account_id in self.failing:
            raise UpstreamRequestError("Google Ads API returned 500", upstream_status=500)
        return PlatformData(campaigns=[CampaignRecord(id=f"cmp-{account_id}", name=f"Campaign {account_id}")])


def _adapter(fetcher):
    return SimpleNamespace(
        build_fetcher=lambda db, context: fetcher,
        build_normalizer=lambda db: GoogleNormalizer(db),
    )


@pytest.fixture
def captured(monkeypatch):
    events = []
    monkeypatch.setattr(
        scheduler_module, "capture_exception", lambda exc, extra=None: events.append((exc, extra))
    )
    return events


def test_failure_in_one_integration_does_not_stop_the_batch(
    context, test_db_session, test_workspace, make_integration, sleep_recorder, captured
):
    for account in ("111", "222", "333"):
        make_integration(test_workspace, external_account_id=account)
    fetcher = _RecordingFetcher(failing={"222"})

    SyncScheduler(PlatformEnum.google, context, adapter=_adapter(fetcher), today=lambda: TODAY).run_cycle()

    assert sorted(call[0] for call in fetcher.calls) == ["111", "222", "333"]
    test_db_session.expire_all()
    stored = {c.platform_id for c in test_db_session.query(Campaign).all()}
    assert stored == {"cmp-111", "cmp-333"}

    assert len(captured) == 1
    exc, extra = captured[0]
    assert isinstance(exc, UpstreamRequestError)
    assert extra["platform"] == "google"
    assert extra["workspace_id"] == str(test_workspace.id)


def test_integrations_are_paced(context, test_workspace, make_integration, sleep_recorder, captured):
    for account in ("111", "222", "333"):
        make_integration(test_workspace, external_account_id=account)

    SyncScheduler(
        PlatformEnum.google, context, adapter=_adapter(_RecordingFetcher()), today=lambda: TODAY
    ).run_cycle()

    assert sleep_recorder.calls == [2.0, 2.0]


def test_sync_window_is_lookback_days_to_today(context, test_workspace, make_integration, captured):
    make_integration(test_workspace, external_account_id="111")
    fetcher = _RecordingFetcher()

    SyncScheduler(PlatformEnum.google, context, adapter=_adapter(fetcher), today=lambda: TODAY).run_cycle()

    assert fetcher.calls == [("111", date(2024, 10, 1), TODAY)]


def test_only_active_integrations_of_the_platform_are_synced(
    context, test_workspace, make_integration, captured
):
    make_integration(test_workspace, external_account_id="111")
    make_integration(test_workspace, external_account_id="222", is_active=False)
    make_integration(test_workspace, platform=PlatformEnum.meta, external_account_id="333")
    fetcher = _RecordingFetcher()

    SyncScheduler(PlatformEnum.google, context, adapter=_adapter(fetcher), today=lambda: TODAY).run_cycle()

    assert [call[0] for call in fetcher.calls] == ["111"]


def test_overlapping_cycle_is_skipped(context, test_workspace, make_integration, captured):
    make_integration(test_workspace, external_account_id="111")
    states = []
    holder = {}

    def reenter():
        states.append(holder["scheduler"].state)
        holder["scheduler"].run_cycle()

    fetcher = _RecordingFetcher(on_fetch=reenter)
    scheduler = SyncScheduler(PlatformEnum.google, context, adapter=_adapter(fetcher), today=lambda: TODAY)
    holder["scheduler"] = scheduler

    scheduler.run_cycle()

    assert len(fetcher.calls) == 1
    assert states == [SchedulerState.running]
    assert scheduler.state == SchedulerState.idle


def test_empty_platform_is_a_quiet_noop(context, sleep_recorder, captured):
    fetcher = _RecordingFetcher()

    SyncScheduler(PlatformEnum.meta, context, adapter=_adapter(fetcher), today=lambda: TODAY).run_cycle()

    assert fetcher.calls == []
    assert sleep_recorder.calls == []
    assert captured == []


def test_google_cycle_end_to_end(context, upstream, test_db_session, test_workspace, make_integration, captured):
    make_integration(test_workspace, external_account_id="123-456-7890")

    def search(request):
        query = json.loads(request.content)["query"]
        if "segments.date" in query:
            return httpx.Response(200, json={"results": [{
                "campaign": {"id": "111", "name": "Brand Search"},
                "segments": {"date": "2024-10-07"},
                "metrics": {
                    "impressions": "1000", "clicks": "20", "costMicros": "5000000",
                    "conversions": "2", "conversionsValue": "100",
                },
            }]})
        return httpx.Response(200, json={"results": [{
            "campaign": {"id": "111", "name": "Brand Search", "status": "ENABLED",
                         "advertisingChannelType": "SEARCH"},
        }]})

    upstream.add(
        "POST", "https://googleads.googleapis.com/v15/customers/1234567890/googleAds:search",
        handler=search,
    )

    SyncScheduler(PlatformEnum.google, context, today=lambda: TODAY).run_cycle()

    assert captured == []
    test_db_session.expire_all()
    row = test_db_session.query(DailyMetric).one()
    assert row.date == date(2024, 10, 7)
    assert float(row.spend) == pytest.approx(5.0)
    assert float(row.ctr) == pytest.approx(2.0)
    assert float(row.roas) == pytest.approx(20.0)


def test_stop_ends_a_running_cycle_before_the_next_integration(
    context, test_workspace, make_integration, sleep_recorder, captured
):
    for account in ("111", "222", "333"):
        make_integration(test_workspace, external_account_id=account)
    holder = {}
    fetcher = _RecordingFetcher(on_fetch=lambda: holder["scheduler"].stop())
    scheduler = SyncScheduler(PlatformEnum.google, context, adapter=_adapter(fetcher), today=lambda: TODAY)
    holder["scheduler"] = scheduler

    scheduler.run_cycle()

    assert [call[0] for call in fetcher.calls] == ["111"]
    assert sleep_recorder.calls == []
    assert scheduler.state == SchedulerState.idle
    assert captured == []


def test_start_rearms_a_stopped_scheduler(context, test_workspace, make_integration, captured):
    make_integration(test_workspace, external_account_id="111")
    fetcher = _RecordingFetcher()
    scheduler = SyncScheduler(PlatformEnum.google, context, adapter=_adapter(fetcher), today=lambda: TODAY)
    scheduler.stop()

    scheduler.run_cycle()
    assert fetcher.calls == []

    async def start():
        scheduler.start()

    asyncio.run(start())
    scheduler.run_cycle()
    assert [call[0] for call in fetcher.calls] == ["111"]


def test_wait_until_idle(context, test_workspace, make_integration, captured):
    make_integration(test_workspace, external_account_id="111")
    waits = []
    holder = {}
    fetcher = _RecordingFetcher(on_fetch=lambda: waits.append(holder["scheduler"].wait_until_idle(0.01)))
    scheduler = SyncScheduler(PlatformEnum.google, context, adapter=_adapter(fetcher), today=lambda: TODAY)
    holder["scheduler"] = scheduler

    scheduler.run_cycle()

    assert waits == [False]
    assert scheduler.wait_until_idle(0.01) is True


def test_failure_log_names_workspace_and_integration(
    context, test_workspace, make_integration, captured, caplog
):
    integration = make_integration(test_workspace, external_account_id="222")

    with caplog.at_level("INFO", logger="adpulse.services.sync_scheduler"):
        SyncScheduler(
            PlatformEnum.google, context, adapter=_adapter(_RecordingFetcher(failing={"222"})), today=lambda: TODAY
        ).run_cycle()

    messages = [record.getMessage() for record in caplog.records]
    assert (
        f"[SCHEDULER] google sync failed for workspace {test_workspace.id} "
        f"(integration {integration.id}): Google Ads API returned 500"
    ) in messages
    assert "[SCHEDULER] google sync complete: 0 succeeded, 1 failed" in messages
