"""Tests for the normalizer: campaign upsert, metric upsert, orphan rows."""

from datetime import date
from decimal import Decimal

import pytest

from adpulse.models import Campaign, DailyMetric, PlatformEnum
from adpulse.services.normalizer import GoogleNormalizer, MetaNormalizer
from adpulse.services.platform_data import CampaignRecord, MetricRecord, PlatformData

DAY = date(2024, 10, 1)


def _google_data(spend="5", clicks=20, name="Brand Search"):
    return PlatformData(
        campaigns=[CampaignRecord(id="111", name=name, status="ENABLED", objective="SEARCH")],
        metrics=[MetricRecord(
            campaign_id="111",
            date=DAY,
            impressions=1000,
            clicks=clicks,
            spend=Decimal(spend),
            conversions=2.0,
            conversion_value=Decimal("100"),
        )],
    )


def test_stores_campaign_and_derived_metrics(test_db_session, test_workspace):
    GoogleNormalizer(test_db_session).normalize_and_store(test_workspace.id, _google_data())

    campaign = test_db_session.query(Campaign).one()
    assert campaign.platform == PlatformEnum.google
    assert campaign.platform_id == "111"
    assert campaign.objective == "SEARCH"

    row = test_db_session.query(DailyMetric).one()
    assert row.campaign_id == campaign.id
    assert row.ad_set_id is None and row.ad_id is None
    assert float(row.spend) == pytest.approx(5.0)
    assert float(row.ctr) == pytest.approx(2.0)
    assert float(row.cpc) == pytest.approx(0.25)
    assert float(row.cpa) == pytest.approx(2.5)
    assert float(row.roas) == pytest.approx(20.0)


def test_rerun_overwrites_instead_of_duplicating(test_db_session, test_workspace):
    normalizer = GoogleNormalizer(test_db_session)
    normalizer.normalize_and_store(test_workspace.id, _google_data())
    normalizer.normalize_and_store(test_workspace.id, _google_data(spend="8", clicks=40, name="Renamed"))

    assert test_db_session.query(Campaign).count() == 1
    assert test_db_session.query(Campaign).one().name == "Renamed"

    row = test_db_session.query(DailyMetric).one()
    assert row.clicks == 40
    assert float(row.spend) == pytest.approx(8.0)
    assert float(row.cpc) == pytest.approx(0.2)


def test_identical_rerun_leaves_values_unchanged(test_db_session, test_workspace):
    normalizer = GoogleNormalizer(test_db_session)
    normalizer.normalize_and_store(test_workspace.id, _google_data())
    first = [(r.date, r.impressions, r.clicks, float(r.spend)) for r in test_db_session.query(DailyMetric)]

    normalizer.normalize_and_store(test_workspace.id, _google_data())
    second = [(r.date, r.impressions, r.clicks, float(r.spend)) for r in test_db_session.query(DailyMetric)]

    assert first == second


def test_orphan_metric_rows_are_skipped(test_db_session, test_workspace):
    data = _google_data()
    data.metrics.append(MetricRecord(campaign_id="999", date=DAY, impressions=5))

    GoogleNormalizer(test_db_session).normalize_and_store(test_workspace.id, data)

    rows = test_db_session.query(DailyMetric).all()
    assert len(rows) == 1
    assert rows[0].impressions == 1000


def test_zero_denominators_store_zero_ratios(test_db_session, test_workspace):
    data = PlatformData(
        campaigns=[CampaignRecord(id="c1", name="Idle")],
        metrics=[MetricRecord(campaign_id="c1", date=DAY)],
    )

    MetaNormalizer(test_db_session).normalize_and_store(test_workspace.id, data)

    row = test_db_session.query(DailyMetric).one()
    assert row.platform == PlatformEnum.meta
    assert float(row.ctr) == 0.0
    assert float(row.cpc) == 0.0
    assert float(row.cpa) == 0.0
    assert float(row.roas) == 0.0


def test_same_campaign_id_is_scoped_by_platform_and_workspace(test_db_session, test_workspace, test_workspace_b):
    GoogleNormalizer(test_db_session).normalize_and_store(test_workspace.id, _google_data())
    MetaNormalizer(test_db_session).normalize_and_store(test_workspace.id, _google_data())
    GoogleNormalizer(test_db_session).normalize_and_store(test_workspace_b.id, _google_data())

    assert test_db_session.query(Campaign).count() == 3
    assert test_db_session.query(DailyMetric).count() == 3


def test_duplicate_campaigns_in_one_batch_collapse(test_db_session, test_workspace):
    data = PlatformData(
        campaigns=[CampaignRecord(id="c1", name="First"), CampaignRecord(id="c1", name="Second")],
        metrics=[],
    )

    GoogleNormalizer(test_db_session).normalize_and_store(test_workspace.id, data)

    campaign = test_db_session.query(Campaign).one()
    assert campaign.name == "Second"
