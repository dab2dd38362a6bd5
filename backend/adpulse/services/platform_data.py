"""Intermediate records produced by fetchers and consumed by normalizers.

WHAT:
    - `CampaignRecord` / `MetricRecord` / `PlatformData`: provider payloads
      already mapped to plain Python values, but not yet stored.
    - `safe_int` / `safe_float` / `safe_decimal`: lenient numeric parsing that
      turns missing, unparseable or non-finite input into zero.
    - `Fetcher`: base class holding the client factory.

WHY:
    Provider APIs send numbers as strings, omit zero-valued fields, and
    occasionally return junk. A bad counter must become 0, never NaN.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional
from uuid import UUID

from adpulse.models import PlatformEnum


@dataclass
class CampaignRecord:
    id: str
    name: str
    status: Optional[str] = None
    objective: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass
class MetricRecord:
    campaign_id: str
    date: date
    impressions: int = 0
    clicks: int = 0
    spend: Decimal = Decimal("0")
    conversions: float = 0.0
    conversion_value: Decimal = Decimal("0")


@dataclass
class PlatformData:
    campaigns: List[CampaignRecord] = field(default_factory=list)
    metrics: List[MetricRecord] = field(default_factory=list)


def safe_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def safe_int(value: Any) -> int:
    return int(safe_float(value))


def safe_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class Fetcher:
    """Builds a platform client per integration and shapes its payloads.

    Args:
        client_factory: callable taking an integration id and returning a
            `PlatformClient` bound to that integration's token.
    """

    platform: PlatformEnum

    def __init__(self, client_factory: Callable[[UUID], Any]):
        self._client_factory = client_factory

    @staticmethod
    def format_account_id(external_account_id: str) -> str:
        return external_account_id

    def fetch_campaign_data(
        self,
        integration_id: UUID,
        account_id: str,
        start_date: date,
        end_date: date,
    ) -> PlatformData:
        raise NotImplementedError
