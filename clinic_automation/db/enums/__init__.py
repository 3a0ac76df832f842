"""Enum definitions for application constants."""

from clinic_automation.db.enums.appointments import (
    AppointmentStatus,
    DEFAULT_APPOINTMENT_STATUS,
)
from clinic_automation.db.enums.automation import (
    ActionType,
    ConditionOperator,
    ConditionType,
    ExecutionOutcome,
    PauseScope,
    RulePriority,
)
from clinic_automation.db.enums.contacts import (
    ContactOrigin,
    ContactPreference,
    DEFAULT_LEAD_STATUS,
    LeadStatus,
)
from clinic_automation.db.enums.jobs import HealthStatus, JobState, SchedulerJob
from clinic_automation.db.enums.messaging import MessagingChannel
from clinic_automation.db.enums.noshow import (
    FollowUpState,
    MotivePriority,
    NoShowMotive,
    ProtocolAction,
    TERMINAL_FOLLOW_UP_STATES,
)

__all__ = [
    "ActionType",
    "AppointmentStatus",
    "ConditionOperator",
    "ConditionType",
    "ContactOrigin",
    "ContactPreference",
    "DEFAULT_APPOINTMENT_STATUS",
    "DEFAULT_LEAD_STATUS",
    "ExecutionOutcome",
    "FollowUpState",
    "HealthStatus",
    "JobState",
    "LeadStatus",
    "MessagingChannel",
    "MotivePriority",
    "NoShowMotive",
    "PauseScope",
    "ProtocolAction",
    "RulePriority",
    "SchedulerJob",
    "TERMINAL_FOLLOW_UP_STATES",
]
