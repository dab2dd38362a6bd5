"""
Sentry Error Tracking
=====================

Centralized error tracking for the API process and the sync worker.

Related files:
- adpulse/main.py: Initializes Sentry on app creation
- adpulse/workers/arq_worker.py: Initializes Sentry on worker startup
- adpulse/services/sync_scheduler.py: Reports per-integration sync failures

Environment Variables:
- SENTRY_DSN: Sentry project DSN (Sentry stays disabled when unset)
- ENVIRONMENT: Environment name (production, staging, development)
"""

from __future__ import annotations

import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = logging.getLogger(__name__)


def init_sentry(dsn: Optional[str], environment: str = "development") -> bool:
    """Initialize the Sentry SDK once per process.

    Returns:
        True if Sentry was initialized, False when no DSN is configured.
    """
    if not dsn:
        logger.debug("[SENTRY] No DSN configured - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info(f"[SENTRY] Initialized for {environment} environment")
    return True


def capture_exception(exception: BaseException, extra: Optional[dict] = None) -> None:
    """Capture a handled exception with extra context.

    Use this where an error is caught so a batch can continue but should still
    reach monitoring. A no-op when the SDK was never initialized.

    Example:
        try:
            scheduler.sync_integration(db, integration)
        except Exception as e:
            capture_exception(e, extra={"integration_id": str(integration.id)})
    """
    with sentry_sdk.new_scope() as scope:
        for key, value in (extra or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)
