"""Appointment job handlers."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from clinic_automation.db.enums import MessagingChannel
from clinic_automation.services.appointment_automation import mark_no_shows, send_reminders


async def process_mark_no_shows(runtime, now: datetime) -> dict[str, Any]:
    return mark_no_shows(
        runtime.appointments,
        runtime.noshow,
        now,
        grace_minutes=runtime.config.NO_SHOW_GRACE_MINUTES,
    )


async def process_appointment_reminders(runtime, now: datetime) -> dict[str, Any]:
    config = runtime.config
    return await send_reminders(
        runtime.appointments,
        runtime.messaging,
        now,
        lookahead_hours=config.REMINDER_LOOKAHEAD_HOURS,
        default_channel=MessagingChannel(config.DEFAULT_MESSAGING_CHANNEL),
        timeout_seconds=config.MESSAGING_TIMEOUT_SECONDS,
        timezone=config.SCHEDULER_TIMEZONE,
    )
