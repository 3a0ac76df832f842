"""Scheduler job enums."""

from enum import Enum


class SchedulerJob(str, Enum):
    """Periodic jobs owned by the scheduler orchestrator."""

    AUTOMATION_RULES = "automation_rules"
    NOSHOW_PROTOCOL = "noshow_protocol"
    NOSHOW_DEADLINE_ALERTS = "noshow_deadline_alerts"
    RECOVERY_CAMPAIGN = "recovery_campaign"
    MARK_NO_SHOWS = "mark_no_shows"
    APPOINTMENT_REMINDERS = "appointment_reminders"


class JobState(str, Enum):
    """Runtime state of a registered job."""

    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"
    MAINTENANCE = "maintenance"


class HealthStatus(str, Enum):
    """Aggregate scheduler health."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
