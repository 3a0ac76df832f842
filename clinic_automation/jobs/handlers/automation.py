"""Automation rule job handlers."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)


async def process_automation_rules(runtime, now: datetime) -> dict[str, Any]:
    """Evaluate every active rule against every contact request."""
    result = await runtime.engine.run_once(now)
    outcomes = Counter(log.outcome for log in result.logs)
    return {"executions": result.total, "outcomes": dict(outcomes)}
