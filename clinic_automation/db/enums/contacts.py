"""Contact request (lead) enums."""

from enum import Enum


class ContactOrigin(str, Enum):
    """Channel a contact request came in through."""

    WEB = "Web"
    WHATSAPP = "WhatsApp"
    FACEBOOK = "Facebook"
    INSTAGRAM = "Instagram"
    PHONE = "Phone"
    EMAIL = "Email"
    TIKTOK = "TikTok"
    YOUTUBE = "YouTube"
    OTHER = "Other"


class ContactPreference(str, Enum):
    """How the patient prefers to be contacted."""

    WHATSAPP = "WhatsApp"
    PHONE = "Phone"
    EMAIL = "Email"


class LeadStatus(str, Enum):
    """Pipeline status of a contact request."""

    NEW = "new"
    REVIEWING = "reviewing"
    CONTACTING = "contacting"
    APPOINTMENT_PENDING = "appointment_pending"
    SCHEDULED = "scheduled"
    NO_SHOW = "no_show"
    LOST = "lost"
    CLOSED = "closed"


DEFAULT_LEAD_STATUS = LeadStatus.NEW
