"""Derived metric formulas.

WHAT:
    Pure functions computing CTR, CPC, CPA and ROAS from raw counters, plus
    the currency formatter used by the insights context.

WHY:
    Normalizers store ratios at write time and the read API recomputes them for
    live aggregates; both must agree on the formulas and on the zero cases.
    Every ratio returns 0.0 when its denominator is zero so display code can
    assume a finite number.

REFERENCES:
    - adpulse/services/normalizer.py (write time)
    - adpulse/services/metrics_service.py (read time)
    - adpulse/services/insights_service.py (format_currency)
"""

import math
from decimal import Decimal
from typing import Dict, Union

Number = Union[int, float, Decimal]


def _as_float(value) -> float:
    if value is None:
        return 0.0
    result = float(value)
    return result if math.isfinite(result) else 0.0


def _safe_ratio(numerator: Number, denominator: Number, scale: float = 1.0) -> float:
    denominator = _as_float(denominator)
    if denominator == 0:
        return 0.0
    return scale * _as_float(numerator) / denominator


def calculate_ctr(clicks: Number, impressions: Number) -> float:
    """Click-through rate as a percentage: 100 * clicks / impressions."""
    return _safe_ratio(clicks, impressions, 100.0)


def calculate_cpc(spend: Number, clicks: Number) -> float:
    """Cost per click: spend / clicks."""
    return _safe_ratio(spend, clicks)


def calculate_cpa(spend: Number, conversions: Number) -> float:
    """Cost per acquisition: spend / conversions."""
    return _safe_ratio(spend, conversions)


def calculate_roas(conversion_value: Number, spend: Number) -> float:
    """Return on ad spend: conversion value / spend."""
    return _safe_ratio(conversion_value, spend)


def derived_metrics(
    impressions: Number,
    clicks: Number,
    spend: Number,
    conversions: Number,
    conversion_value: Number,
) -> Dict[str, float]:
    return {
        "ctr": calculate_ctr(clicks, impressions),
        "cpc": calculate_cpc(spend, clicks),
        "cpa": calculate_cpa(spend, conversions),
        "roas": calculate_roas(conversion_value, spend),
    }


def format_currency(value: Number) -> str:
    """Dollar amount with thousands separators, e.g. `-$1,234.50`."""
    amount = _as_float(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"
