"""Tests for the arq worker wiring (no Redis connection is made)."""

import asyncio

from adpulse.models import PlatformEnum
from adpulse.workers import arq_worker


def test_redis_settings_from_url():
    settings = arq_worker.get_redis_settings("rediss://user:pw@cache.internal:6380/2")

    assert settings.host == "cache.internal"
    assert settings.port == 6380
    assert settings.password == "pw"
    assert settings.database == 2
    assert settings.ssl is True


def test_sync_hours():
    assert arq_worker.sync_hours(6) == {0, 6, 12, 18}
    assert arq_worker.sync_hours(0) == set(range(24))


def test_run_platform_sync_runs_the_platform_cycle():
    class _Scheduler:
        cycles = 0

        def run_cycle(self):
            _Scheduler.cycles += 1

    ctx = {"schedulers": {PlatformEnum.meta: _Scheduler()}}

    asyncio.run(arq_worker.scheduled_meta_sync(ctx))

    assert _Scheduler.cycles == 1
    assert ctx["cycles_run"] == 1


def test_worker_registers_one_cron_job_per_platform():
    names = {job.name for job in arq_worker.WorkerSettings.cron_jobs}

    assert names == {"cron:scheduled_google_sync", "cron:scheduled_meta_sync"}
