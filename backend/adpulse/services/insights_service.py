"""Insights assistant: answer free-text questions about recent performance.

WHAT:
    Builds a fixed-format summary of the workspace's last 30 days (totals plus
    per-platform spend and conversions) and sends it with the user's question
    to an OpenAI chat completion.

WHY:
    The model only sees aggregated numbers we computed, never raw rows, so the
    prompt stays small and the figures it quotes match the dashboard.

REFERENCES:
    - adpulse/services/metrics_service.py (aggregations)
    - adpulse/routers/insights.py
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Callable, Optional
from uuid import UUID

from openai import OpenAI
from sqlalchemy.orm import Session

from adpulse.errors import ConfigurationError
from adpulse.services.metrics_engine import format_currency
from adpulse.services.metrics_service import MetricFilters, get_platform_totals, get_summary
from adpulse.services.sync_scheduler import utc_today

logger = logging.getLogger(__name__)

INSIGHTS_WINDOW_DAYS = 30
FALLBACK_INSIGHT = "Could not generate text insight."

SYSTEM_PROMPT = (
    "You are an expert Ad Performance Analyst. You help marketers understand "
    "their advertising performance across Google Ads and Meta Ads.\n\n"
    "Use the following performance data to answer the user's question. Be concise, "
    "quote concrete numbers, and suggest actionable next steps when relevant. "
    "If the data does not answer the question, say so.\n\n"
    "{context}"
)


def _format_count(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def build_metrics_context(db: Session, workspace_id: UUID, start_date: date, end_date: date) -> str:
    """Render the totals block passed verbatim to the model."""
    filters = MetricFilters(start_date=start_date, end_date=end_date)
    summary = get_summary(db, workspace_id, filters)
    platforms = get_platform_totals(db, workspace_id, filters)

    lines = [
        f"Performance Summary (from {start_date.isoformat()} to {end_date.isoformat()}):",
        f"- Total Spend: {format_currency(summary['spend'])}",
        f"- Total Impressions: {summary['impressions']}",
        f"- Total Clicks: {summary['clicks']}",
        f"- Total Conversions: {_format_count(summary['conversions'])}",
        f"- Total Conversion Value: {format_currency(summary['conversion_value'])}",
        "",
        "Platform Breakdown:",
    ]
    for item in platforms:
        lines.append(
            f"- {item['platform'].value.upper()}: {format_currency(item['spend'])} spend, "
            f"{_format_count(item['conversions'])} conversions"
        )
    return "\n".join(lines)


class InsightsService:
    """Question answering over aggregated metrics.

    Args:
        db: session used for the aggregation queries.
        settings: provides OPENAI_API_KEY / OPENAI_MODEL / INSIGHTS_MAX_TOKENS.
        client: injected OpenAI client (tests pass a fake).
    """

    def __init__(
        self,
        db: Session,
        settings,
        client: Optional[OpenAI] = None,
        today: Callable[[], date] = utc_today,
    ):
        self.db = db
        self.settings = settings
        self.today = today
        if client is None:
            if not settings.OPENAI_API_KEY:
                raise ConfigurationError("OPENAI_API_KEY is not configured")
            client = OpenAI(api_key=settings.OPENAI_API_KEY)
        self.client = client

    def generate_insights(self, workspace_id: UUID, question: str) -> str:
        end_date = self.today()
        start_date = end_date - timedelta(days=INSIGHTS_WINDOW_DAYS)
        context = build_metrics_context(self.db, workspace_id, start_date, end_date)

        logger.info(f"[INSIGHTS] Generating insight for workspace {workspace_id}")
        response = self.client.chat.completions.create(
            model=self.settings.OPENAI_MODEL,
            max_tokens=self.settings.INSIGHTS_MAX_TOKENS,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT.format(context=context)},
                {"role": "user", "content": question},
            ],
        )
        return extract_text(response)


def extract_text(response) -> str:
    """Return the first choice's text, or the fallback for unexpected shapes."""
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        logger.warning(f"[INSIGHTS] Unrecognized completion shape: {type(response)!r}")
        return FALLBACK_INSIGHT
    if not isinstance(content, str) or not content:
        return FALLBACK_INSIGHT
    return content
