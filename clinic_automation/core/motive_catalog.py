"""No-show motive catalog and recovery campaign templates (reference data)."""

from __future__ import annotations

from dataclasses import dataclass

from clinic_automation.core.constants import RECOVERY_CAMPAIGN_PREFIX
from clinic_automation.db.enums import MotivePriority, NoShowMotive


@dataclass(frozen=True)
class MotiveDescriptor:
    motive: NoShowMotive
    description: str
    requires_recovery: bool
    recontact_delay_days: int
    priority: MotivePriority


MOTIVE_CATALOG: dict[NoShowMotive, MotiveDescriptor] = {
    NoShowMotive.ECONOMICO: MotiveDescriptor(
        NoShowMotive.ECONOMICO, "Financial constraints", True, 2, MotivePriority.HIGH
    ),
    NoShowMotive.TRANSPORTE: MotiveDescriptor(
        NoShowMotive.TRANSPORTE, "Transport problems", True, 1, MotivePriority.HIGH
    ),
    NoShowMotive.SALUD: MotiveDescriptor(
        NoShowMotive.SALUD, "Health problems", True, 3, MotivePriority.MEDIUM
    ),
    NoShowMotive.OLVIDO: MotiveDescriptor(
        NoShowMotive.OLVIDO, "Forgot the appointment", True, 1, MotivePriority.HIGH
    ),
    NoShowMotive.COMPETENCIA: MotiveDescriptor(
        NoShowMotive.COMPETENCIA, "Went to a competitor", False, 0, MotivePriority.LOW
    ),
    NoShowMotive.NO_RESPONDE: MotiveDescriptor(
        NoShowMotive.NO_RESPONDE, "Does not answer", True, 2, MotivePriority.MEDIUM
    ),
    NoShowMotive.RAZA_BRAVA: MotiveDescriptor(
        NoShowMotive.RAZA_BRAVA, "Difficult patient", False, 0, MotivePriority.LOW
    ),
    NoShowMotive.OTRO: MotiveDescriptor(
        NoShowMotive.OTRO, "Other", True, 2, MotivePriority.MEDIUM
    ),
}


def get_motive(motive: NoShowMotive | str) -> MotiveDescriptor:
    """Raises ValueError for motives outside the catalog."""
    return MOTIVE_CATALOG[NoShowMotive(motive)]


def campaign_id_for(motive: NoShowMotive | str) -> str:
    return f"{RECOVERY_CAMPAIGN_PREFIX}{NoShowMotive(motive).value}"


@dataclass(frozen=True)
class RecoveryCampaignTemplate:
    campaign_id: str
    name: str
    message: str  # "{name}" is replaced with the patient's first name
    wait_days: int
    active: bool = True


RECOVERY_CAMPAIGNS: dict[str, RecoveryCampaignTemplate] = {
    template.campaign_id: template
    for template in (
        RecoveryCampaignTemplate(
            campaign_id_for(NoShowMotive.ECONOMICO),
            "Payment options",
            "Hi {name}, we missed you at your appointment. We now offer flexible "
            "payment plans so cost doesn't get in the way of your care. "
            "Reply to book a new date.",
            2,
        ),
        RecoveryCampaignTemplate(
            campaign_id_for(NoShowMotive.TRANSPORTE),
            "Nearest branch",
            "Hi {name}, getting to us can be hard. We can book you at the branch "
            "closest to you or at a time that suits your commute. Want us to find a slot?",
            1,
        ),
        RecoveryCampaignTemplate(
            campaign_id_for(NoShowMotive.SALUD),
            "Health check-in",
            "Hi {name}, we hope you're feeling better. Whenever you're ready, "
            "we'll save you a spot. Reply and we'll reschedule.",
            3,
        ),
        RecoveryCampaignTemplate(
            campaign_id_for(NoShowMotive.OLVIDO),
            "Friendly reminder",
            "Hi {name}, it looks like your appointment slipped by. No problem, "
            "reply with a day that works and we'll book it.",
            1,
        ),
        RecoveryCampaignTemplate(
            campaign_id_for(NoShowMotive.NO_RESPONDE),
            "Reconnect",
            "Hi {name}, we've been trying to reach you about your appointment. "
            "Reply to this message to choose a new date.",
            2,
        ),
        RecoveryCampaignTemplate(
            campaign_id_for(NoShowMotive.OTRO),
            "General recovery",
            "Hi {name}, we'd love to see you. Reply to reschedule your appointment.",
            2,
        ),
    )
}
