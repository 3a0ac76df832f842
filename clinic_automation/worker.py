"""Standalone scheduler worker - runs the periodic jobs without the HTTP surface."""

from __future__ import annotations

import asyncio
import logging

from clinic_automation.core.config import settings
from clinic_automation.runtime import build_runtime

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


async def worker_loop() -> None:
    """Start the scheduler and keep the process alive until cancelled."""
    runtime = build_runtime(settings)
    scheduler = runtime.scheduler
    logger.info(
        "Worker starting (poll interval: %ss, jobs: %s)",
        settings.SCHEDULER_POLL_INTERVAL_SECONDS,
        ", ".join(scheduler.job_names),
    )
    if settings.MESSAGING_DRY_RUN:
        logger.warning("MESSAGING_DRY_RUN is set - messages will be logged but not sent")

    scheduler.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await scheduler.shutdown()
        logger.info("Worker stopped")


def main() -> None:
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker interrupted")


if __name__ == "__main__":
    main()
