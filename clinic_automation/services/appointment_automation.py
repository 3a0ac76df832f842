"""Appointment automation: detect no-shows and send day-before reminders."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError

from clinic_automation.core.errors import AutomationError, ConflictError
from clinic_automation.core.structured_logging import build_log_context
from clinic_automation.db.enums import AppointmentStatus, MessagingChannel
from clinic_automation.db.models import Appointment
from clinic_automation.services.messaging import MessagingPort, deliver, resolve_recipient
from clinic_automation.services.noshow_service import NoShowService
from clinic_automation.services.record_store import RecordStore
from clinic_automation.utils.datetime_utils import ensure_utc

logger = logging.getLogger(__name__)

REMINDER_TEMPLATE = (
    "Hi {name}, this is a reminder of your appointment on {date} at {time}. "
    "Reply to confirm or reschedule."
)


def mark_no_shows(
    appointments: RecordStore[Appointment],
    noshow_service: NoShowService,
    now: datetime,
    *,
    grace_minutes: int = 60,
) -> dict[str, int]:
    """Flag past scheduled appointments as no-shows and open their cases.

    Idempotent: an appointment already flagged is no longer `scheduled`,
    and a case that already exists for it is left alone.
    """
    cutoff = ensure_utc(now) - timedelta(minutes=grace_minutes)
    marked = 0
    cases_opened = 0
    failed = 0
    for appointment in appointments.find(status=AppointmentStatus.SCHEDULED):
        if ensure_utc(appointment.scheduled_at) > cutoff:
            continue
        try:
            appointments.update(
                appointment.id,
                {"status": AppointmentStatus.NO_SHOW.value},
                expected_version=appointment.version,
            )
        except ConflictError:
            logger.info("Appointment %s changed concurrently; retrying next tick", appointment.id)
            continue
        except SQLAlchemyError as e:
            failed += 1
            logger.warning(
                "Could not flag appointment %s as no-show: %s",
                appointment.id,
                e,
                extra=build_log_context(job="mark_no_shows", target_id=appointment.id),
            )
            continue
        marked += 1
        try:
            noshow_service.register_no_show(
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
                patient_name=appointment.patient_name,
                patient_phone=appointment.patient_phone,
                contact_channel=appointment.channel,
                branch_id=appointment.branch_id,
                missed_at=appointment.scheduled_at,
                now=now,
            )
            cases_opened += 1
        except ConflictError:
            logger.info("No-show case already exists for appointment %s", appointment.id)
        except (AutomationError, SQLAlchemyError) as e:
            failed += 1
            logger.warning(
                "Could not open no-show case for appointment %s: %s",
                appointment.id,
                e,
                extra=build_log_context(job="mark_no_shows", target_id=appointment.id),
            )

    if marked:
        logger.info("Marked %d appointments as no-show (%d cases opened)", marked, cases_opened)
    return {"marked": marked, "cases_opened": cases_opened, "failed": failed}


async def send_reminders(
    appointments: RecordStore[Appointment],
    messaging: MessagingPort,
    now: datetime,
    *,
    lookahead_hours: int = 24,
    default_channel: MessagingChannel = MessagingChannel.WHATSAPP,
    timeout_seconds: float = 10.0,
    timezone: str = "UTC",
) -> dict[str, int]:
    """One reminder per upcoming appointment; `reminder_sent_at` is the dedupe key."""
    now = ensure_utc(now)
    horizon = now + timedelta(hours=lookahead_hours)
    sent = 0
    failed = 0
    candidates = appointments.find(
        status=[AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED], reminder_sent_at=None
    )
    for appointment in candidates:
        scheduled_at = ensure_utc(appointment.scheduled_at)
        if not (now < scheduled_at <= horizon):
            continue
        local = scheduled_at.astimezone(ZoneInfo(timezone))
        text = REMINDER_TEMPLATE.format(
            name=(appointment.patient_name or "").split(" ")[0],
            date=local.strftime("%Y-%m-%d"),
            time=local.strftime("%H:%M"),
        )
        channel, recipient = resolve_recipient(
            appointment.channel, appointment.patient_phone, None, default_channel
        )
        try:
            await deliver(messaging, channel, recipient, text, timeout_seconds)
            appointments.update(
                appointment.id, {"reminder_sent_at": now}, expected_version=appointment.version
            )
        except (AutomationError, SQLAlchemyError) as e:
            failed += 1
            logger.warning(
                "Reminder failed for appointment %s: %s",
                appointment.id,
                e,
                extra=build_log_context(job="appointment_reminders", target_id=appointment.id),
            )
            continue
        sent += 1
    return {"sent": sent, "failed": failed}
