"""No-show protocol and recovery campaign job handlers."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from clinic_automation.core.structured_logging import build_log_context
from clinic_automation.services.recovery_campaigns import run_recovery_campaign

logger = logging.getLogger(__name__)


async def process_noshow_protocol(runtime, now: datetime) -> dict[str, Any]:
    """Daily 7-day protocol tick: close overdue cases, count alerts."""
    result = runtime.noshow.process_protocol(now)
    return {
        "processed": result.processed,
        "marked_lost": result.marked_lost,
        "upcoming_alerts": result.upcoming_alerts,
        "failed": result.failed,
    }


async def process_noshow_deadline_alerts(runtime, now: datetime) -> dict[str, Any]:
    """Log every open case whose response deadline is close."""
    upcoming = runtime.noshow.upcoming_deadlines(now)
    for case, status in upcoming:
        logger.warning(
            "No-show case close to deadline: %s",
            status.message,
            extra=build_log_context(job="noshow_deadline_alerts", case_id=case.id),
        )
    return {"alerts": len(upcoming)}


async def process_recovery_campaign(runtime, now: datetime) -> dict[str, Any]:
    """Daily recovery send for due cases on the recovery list."""
    result = await run_recovery_campaign(
        runtime.noshow,
        runtime.selector,
        runtime.messaging,
        now,
        limit=runtime.config.RECOVERY_DAILY_LIMIT,
        timeout_seconds=runtime.config.MESSAGING_TIMEOUT_SECONDS,
    )
    return {"sent": result.sent, "skipped": result.skipped, "failed": result.failed}
