"""Appointment enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """Lifecycle of an appointment, as far as automation reads/writes it."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULE_REQUESTED = "reschedule_requested"


DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.SCHEDULED
