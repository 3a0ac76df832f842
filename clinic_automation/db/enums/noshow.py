"""No-show case enums."""

from enum import Enum


class NoShowMotive(str, Enum):
    """Why the patient missed the appointment."""

    ECONOMICO = "Economico"
    TRANSPORTE = "Transporte"
    SALUD = "Salud"
    OLVIDO = "Olvido"
    COMPETENCIA = "Competencia"
    NO_RESPONDE = "NoResponde"
    RAZA_BRAVA = "RazaBrava"  # Difficult patient, blocked from marketing
    OTRO = "Otro"


class FollowUpState(str, Enum):
    """No-show follow-up state. Rescheduled, Lost and Blocked are terminal."""

    PENDING_CONTACT = "PendingContact"
    IN_FOLLOW_UP = "InFollowUp"
    RESCHEDULED = "Rescheduled"
    LOST = "Lost"
    BLOCKED = "Blocked"


TERMINAL_FOLLOW_UP_STATES = frozenset(
    {FollowUpState.RESCHEDULED, FollowUpState.LOST, FollowUpState.BLOCKED}
)


class MotivePriority(str, Enum):
    """Recovery priority of a motive."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ProtocolAction(str, Enum):
    """Per-case outcome of a protocol tick."""

    MARKED_LOST = "MARKED_LOST"
    UPCOMING_ALERT = "UPCOMING_ALERT"
    WITHIN_DEADLINE = "WITHIN_DEADLINE"
