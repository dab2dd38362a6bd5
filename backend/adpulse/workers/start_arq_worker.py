#!/usr/bin/env python3
"""Start the ARQ sync worker.

USAGE:
    python -m adpulse.workers.start_arq_worker

    Or directly:
    arq adpulse.workers.arq_worker.WorkerSettings
"""

import logging
import sys

from arq import run_worker

from adpulse.workers.arq_worker import WorkerSettings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


def main():
    """Start the ARQ worker."""
    logger.info("Starting ARQ sync worker...")
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
