"""Outbound messaging: WhatsApp Cloud API, Messenger and Instagram send APIs.

The automation core only needs "send text to recipient on channel".
Adapters return `(message_id, error)` tuples; `deliver` bounds the call
with a timeout and turns any error into TransientDeliveryError.
"""

from __future__ import annotations

import logging
import uuid
from typing import Protocol

import anyio
import httpx

from clinic_automation.core.config import Settings
from clinic_automation.core.errors import TransientDeliveryError
from clinic_automation.db.enums import ContactOrigin, MessagingChannel

logger = logging.getLogger(__name__)

# HTTP client settings
HTTPX_TIMEOUT = httpx.Timeout(10.0, connect=5.0)

_ORIGIN_CHANNELS = {
    ContactOrigin.FACEBOOK.value.lower(): MessagingChannel.FACEBOOK,
    ContactOrigin.INSTAGRAM.value.lower(): MessagingChannel.INSTAGRAM,
}


class MessagingPort(Protocol):
    async def send(
        self, channel: MessagingChannel, recipient: str, text: str
    ) -> tuple[str | None, str | None]:
        """Return (message_id, None) on success or (None, error)."""
        ...


def channel_for_origin(origin: str | None, default: MessagingChannel) -> MessagingChannel:
    """Facebook origin sends on Messenger, Instagram on Instagram, anything else on default."""
    if not origin:
        return default
    return _ORIGIN_CHANNELS.get(origin.strip().lower(), default)


def resolve_recipient(
    origin: str | None,
    phone: str | None,
    social_sender_id: str | None,
    default: MessagingChannel,
) -> tuple[MessagingChannel, str | None]:
    """Channel and recipient for a patient.

    Messenger and Instagram address the sender id, never a phone number.
    Without one, the message goes to the phone on the default channel.
    """
    channel = channel_for_origin(origin, default)
    if channel in (MessagingChannel.FACEBOOK, MessagingChannel.INSTAGRAM):
        if social_sender_id:
            return channel, social_sender_id
        return default, phone
    return channel, phone


async def deliver(
    port: MessagingPort,
    channel: MessagingChannel,
    recipient: str | None,
    text: str,
    timeout_seconds: float,
) -> str:
    """Send one message with an explicit timeout.

    Raises:
        TransientDeliveryError: missing recipient, adapter error or timeout.
    """
    if not recipient:
        raise TransientDeliveryError(f"No recipient for {channel.value} message")
    try:
        with anyio.fail_after(timeout_seconds):
            message_id, error = await port.send(channel, recipient, text)
    except TimeoutError as exc:
        raise TransientDeliveryError(
            f"{channel.value} send timed out after {timeout_seconds}s"
        ) from exc
    if error or not message_id:
        raise TransientDeliveryError(f"{channel.value} send failed: {error or 'no message id'}")
    return message_id


class DryRunMessagingClient:
    """Logs instead of sending. Used when MESSAGING_DRY_RUN is set."""

    async def send(
        self, channel: MessagingChannel, recipient: str, text: str
    ) -> tuple[str | None, str | None]:
        logger.info("[DRY RUN] %s message skipped (%d chars)", channel.value, len(text))
        return f"dry-run-{uuid.uuid4().hex[:12]}", None


class MetaMessagingClient:
    """Meta Graph API sender for WhatsApp, Messenger and Instagram."""

    def __init__(self, config: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        self._transport = transport

    def _graph_base(self) -> str:
        return f"https://graph.facebook.com/{self.config.META_API_VERSION}"

    def _build_request(
        self, channel: MessagingChannel, recipient: str, text: str
    ) -> tuple[str, str, dict]:
        if channel == MessagingChannel.WHATSAPP:
            url = f"{self._graph_base()}/{self.config.WHATSAPP_PHONE_NUMBER_ID}/messages"
            payload = {
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": recipient,
                "type": "text",
                "text": {"body": text},
            }
            return url, self.config.WHATSAPP_ACCESS_TOKEN, payload

        token = (
            self.config.META_PAGE_ACCESS_TOKEN
            if channel == MessagingChannel.FACEBOOK
            else self.config.instagram_token
        )
        payload = {
            "recipient": {"id": recipient},
            "messaging_type": "MESSAGE_TAG",
            "tag": "ACCOUNT_UPDATE",
            "message": {"text": text},
        }
        return f"{self._graph_base()}/me/messages", token, payload

    async def send(
        self, channel: MessagingChannel, recipient: str, text: str
    ) -> tuple[str | None, str | None]:
        url, token, payload = self._build_request(channel, recipient, text)
        if not token:
            return None, f"No access token configured for {channel.value}"

        try:
            async with httpx.AsyncClient(timeout=HTTPX_TIMEOUT, transport=self._transport) as client:
                resp = await client.post(
                    url,
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
                if resp.status_code >= 400:
                    error_body = resp.text[:500]
                    return None, f"Meta API {resp.status_code}: {error_body}"
                data = resp.json()
        except httpx.TimeoutException:
            return None, "Meta API timeout"
        except httpx.ConnectError:
            return None, "Meta API connection failed"
        except Exception as e:
            return None, f"Meta API error: {str(e)[:200]}"

        if channel == MessagingChannel.WHATSAPP:
            messages = data.get("messages") or []
            message_id = messages[0].get("id") if messages else None
        else:
            message_id = data.get("message_id")
        if not message_id:
            return None, "Meta API returned no message id"
        return message_id, None


def build_messaging_client(config: Settings) -> MessagingPort:
    if config.MESSAGING_DRY_RUN:
        return DryRunMessagingClient()
    return MetaMessagingClient(config)
