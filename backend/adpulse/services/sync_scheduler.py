"""Sync scheduler service.

WHAT:
    One `SyncScheduler` per platform. Each cycle walks every active integration
    of that platform in order and runs fetch -> normalize for the last
    `SYNC_LOOKBACK_DAYS` days, pausing `SYNC_PACING_SECONDS` between
    integrations.

WHY:
    - Integrations run strictly one after another to keep the outbound request
      rate under the advertiser APIs' limits. Google and Meta schedulers run
      independently and may overlap.
    - One failing integration is rolled back, logged and reported; the rest of
      the batch still runs.
    - The scheduler is fire-and-forget: no outcome is returned or stored.
      A failed sync only shows up in logs and Sentry.

LIFECYCLE:
    Idle -> Running -> Idle, once per `SYNC_INTERVAL_HOURS`.
    `start()` / `stop()` are owned by the process wiring (FastAPI lifespan);
    the arq worker calls `run_cycle()` from its own cron jobs instead.
    A cycle triggered while the previous one is still running is skipped.
    `stop()` also ends a running cycle before its next integration; the
    lifespan waits for that with `wait_until_idle()` before closing the context.

REFERENCES:
    - adpulse/services/platform_registry.py
    - adpulse/workers/arq_worker.py
    - adpulse/main.py (lifespan)
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from adpulse.database import session_scope
from adpulse.models import Integration, PlatformEnum
from adpulse.services.platform_registry import PlatformAdapter, get_adapter
from adpulse.telemetry import capture_exception

logger = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    idle = "idle"
    running = "running"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class SyncScheduler:
    """Periodic driver for one platform's ingestion pipeline.

    Args:
        platform: platform whose integrations this scheduler syncs.
        context: `AppContext` (settings, session factory, sleep).
        adapter: pipeline classes; defaults to the registry entry for `platform`.
        today: clock for the sync window.
    """

    def __init__(
        self,
        platform: PlatformEnum,
        context,
        *,
        adapter: Optional[PlatformAdapter] = None,
        today: Callable[[], date] = utc_today,
    ):
        settings = context.settings
        self.platform = PlatformEnum(platform)
        self.interval_seconds = settings.SYNC_INTERVAL_HOURS * 3600
        self.lookback_days = settings.SYNC_LOOKBACK_DAYS
        self.pacing_seconds = settings.SYNC_PACING_SECONDS

        self._context = context
        self._adapter = adapter or get_adapter(self.platform)
        self._today = today
        self._sleep = context.sleep
        self._run_lock = threading.Lock()
        self._state = SchedulerState.idle
        self._task: Optional[asyncio.Task] = None
        self._stop_event = threading.Event()

    @property
    def state(self) -> SchedulerState:
        return self._state

    # --- Lifecycle -----------------------------------------------------
    def start(self) -> None:
        """Schedule cycles on the running event loop every `interval_seconds`."""
        if self._task and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"[SCHEDULER] {self.platform.value} sync scheduled every {self.interval_seconds}s")

    def stop(self) -> None:
        """Cancel future cycles and end a running one after its current integration."""
        self._stop_event.set()
        if self._task:
            self._task.cancel()
            self._task = None
            logger.info(f"[SCHEDULER] {self.platform.value} sync stopped")

    def wait_until_idle(self, timeout: float) -> bool:
        """Block until no cycle is running. Returns False on timeout."""
        if not self._run_lock.acquire(timeout=timeout):
            return False
        self._run_lock.release()
        return True

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await asyncio.to_thread(self.run_cycle)

    # --- One cycle -----------------------------------------------------
    def run_cycle(self) -> None:
        """Sync every active integration of the platform once."""
        if not self._run_lock.acquire(blocking=False):
            logger.warning(f"[SCHEDULER] {self.platform.value} sync still running, skipping this cycle")
            return

        self._state = SchedulerState.running
        try:
            with session_scope(self._context.session_factory) as db:
                self._run_batch(db)
        except Exception as e:
            logger.error(f"[SCHEDULER] {self.platform.value} sync cycle failed: {e}")
            capture_exception(e, extra={
                "operation": "platform_sync_cycle",
                "platform": self.platform.value,
            })
        finally:
            self._state = SchedulerState.idle
            self._run_lock.release()

    def _run_batch(self, db: Session) -> None:
        integrations = (
            db.query(Integration)
            .filter(Integration.platform == self.platform, Integration.is_active.is_(True))
            .order_by(Integration.created_at)
            .all()
        )
        # Plain tuples: ORM instances expire on rollback after a failure.
        targets = [(i.id, i.workspace_id, i.external_account_id) for i in integrations]
        logger.info(f"[SCHEDULER] Starting {self.platform.value} sync for {len(targets)} integrations")

        succeeded, failed = 0, 0
        for index, (integration_id, workspace_id, external_account_id) in enumerate(targets):
            if self._stop_event.is_set():
                logger.info(
                    f"[SCHEDULER] {self.platform.value} sync interrupted by shutdown, "
                    f"{len(targets) - index} integrations left"
                )
                break
            if index:
                self._sleep(self.pacing_seconds)
            try:
                self.sync_integration(db, integration_id, workspace_id, external_account_id)
                succeeded += 1
            except Exception as e:
                db.rollback()
                failed += 1
                logger.error(
                    f"[SCHEDULER] {self.platform.value} sync failed for workspace {workspace_id} "
                    f"(integration {integration_id}): {e}"
                )
                capture_exception(e, extra={
                    "operation": "platform_sync",
                    "platform": self.platform.value,
                    "integration_id": str(integration_id),
                    "workspace_id": str(workspace_id),
                })

        logger.info(f"[SCHEDULER] {self.platform.value} sync complete: {succeeded} succeeded, {failed} failed")

    def sync_integration(self, db: Session, integration_id, workspace_id, external_account_id: str) -> None:
        """Fetch the lookback window for one integration and store it."""
        end_date = self._today()
        start_date = end_date - timedelta(days=self.lookback_days)

        fetcher = self._adapter.build_fetcher(db, self._context)
        normalizer = self._adapter.build_normalizer(db)

        account_id = fetcher.format_account_id(external_account_id)
        data = fetcher.fetch_campaign_data(integration_id, account_id, start_date, end_date)
        normalizer.normalize_and_store(workspace_id, data)

        logger.info(f"[SCHEDULER] {self.platform.value} sync done for workspace {workspace_id} (account {account_id})")
