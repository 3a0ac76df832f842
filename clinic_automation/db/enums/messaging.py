"""Messaging enums."""

from enum import Enum


class MessagingChannel(str, Enum):
    """Channels the messaging port can deliver on."""

    WHATSAPP = "whatsapp"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
