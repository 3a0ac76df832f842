"""Job handler registry."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping

from clinic_automation.db.enums import SchedulerJob
from clinic_automation.jobs.handlers import appointments, automation, noshow

JobHandler = Callable[[Any, datetime], Awaitable[dict[str, Any]]]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    SchedulerJob.AUTOMATION_RULES.value: automation.process_automation_rules,
    SchedulerJob.NOSHOW_PROTOCOL.value: noshow.process_noshow_protocol,
    SchedulerJob.NOSHOW_DEADLINE_ALERTS.value: noshow.process_noshow_deadline_alerts,
    SchedulerJob.RECOVERY_CAMPAIGN.value: noshow.process_recovery_campaign,
    SchedulerJob.MARK_NO_SHOWS.value: appointments.process_mark_no_shows,
    SchedulerJob.APPOINTMENT_REMINDERS.value: appointments.process_appointment_reminders,
}

JOB_DESCRIPTIONS: Mapping[str, str] = {
    SchedulerJob.AUTOMATION_RULES.value: "Run automation rules over contact requests",
    SchedulerJob.NOSHOW_PROTOCOL.value: "7-day no-show protocol tick",
    SchedulerJob.NOSHOW_DEADLINE_ALERTS.value: "Log no-show cases close to their deadline",
    SchedulerJob.RECOVERY_CAMPAIGN.value: "Daily recovery campaign send",
    SchedulerJob.MARK_NO_SHOWS.value: "Flag missed appointments and open no-show cases",
    SchedulerJob.APPOINTMENT_REMINDERS.value: "Send appointment reminders for the next 24h",
}


def resolve_job_handler(job_type: str) -> JobHandler:
    handler = JOB_HANDLERS.get(job_type)
    if not handler:
        raise ValueError(f"Unknown job type: {job_type}")
    return handler
