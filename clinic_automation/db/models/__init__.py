"""SQLAlchemy ORM models."""

from clinic_automation.db.models.appointments import Appointment
from clinic_automation.db.models.automation import AutomationLog, AutomationRule
from clinic_automation.db.models.contacts import ContactRequest
from clinic_automation.db.models.noshow import NoShowCase

__all__ = [
    "Appointment",
    "AutomationLog",
    "AutomationRule",
    "ContactRequest",
    "NoShowCase",
]
