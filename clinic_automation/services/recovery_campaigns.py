"""Recovery campaigns: pick a template and channel per no-show case and send."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from clinic_automation.core.constants import RECOVERY_CAMPAIGN_PREFIX, SYSTEM_ACTOR
from clinic_automation.core.errors import AutomationError
from clinic_automation.core.motive_catalog import RECOVERY_CAMPAIGNS, RecoveryCampaignTemplate
from clinic_automation.core.structured_logging import build_log_context
from clinic_automation.db.enums import MessagingChannel
from clinic_automation.services import noshow_lifecycle as lifecycle
from clinic_automation.services.messaging import MessagingPort, deliver, resolve_recipient
from clinic_automation.services.noshow_service import NoShowService
from clinic_automation.utils.datetime_utils import ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CampaignSelection:
    template: RecoveryCampaignTemplate
    channel: MessagingChannel
    recipient: str | None
    message: str


@dataclass
class RecoveryRunResult:
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class RecoveryCampaignSelector:
    """Maps a case's motive to its recovery template and delivery channel."""

    def __init__(
        self,
        templates: dict[str, RecoveryCampaignTemplate] | None = None,
        default_channel: MessagingChannel = MessagingChannel.WHATSAPP,
    ) -> None:
        self.templates = templates if templates is not None else RECOVERY_CAMPAIGNS
        self.default_channel = default_channel

    def template_for(self, case: Any) -> RecoveryCampaignTemplate | None:
        campaign_id = case.campaign_id
        if not campaign_id and case.motive:
            campaign_id = f"{RECOVERY_CAMPAIGN_PREFIX}{case.motive}"
        template = self.templates.get(campaign_id) if campaign_id else None
        if template is None or not template.active:
            return None
        return template

    def select(self, case: Any) -> CampaignSelection | None:
        """None when the case must not receive recovery messages."""
        if case.blocked_flag or lifecycle.is_terminal(case) or not case.in_recovery_list:
            return None
        template = self.template_for(case)
        if template is None:
            return None
        first_name = (case.patient_name or "").split(" ")[0]
        channel, recipient = resolve_recipient(
            case.contact_channel, case.patient_phone, case.social_sender_id, self.default_channel
        )
        return CampaignSelection(
            template=template,
            channel=channel,
            recipient=recipient,
            message=template.message.replace("{name}", first_name),
        )


def is_due(case: Any, now: datetime) -> bool:
    return case.next_attempt_at is None or ensure_utc(case.next_attempt_at) <= ensure_utc(now)


async def run_recovery_campaign(
    service: NoShowService,
    selector: RecoveryCampaignSelector,
    messaging: MessagingPort,
    now: datetime,
    *,
    limit: int = 50,
    timeout_seconds: float = 10.0,
) -> RecoveryRunResult:
    """Send today's recovery messages to due cases on the recovery list.

    Each send is registered as a contact attempt, which pushes the next
    attempt out by the motive's recontact delay. Only sendable cases count
    towards `limit`.
    """
    result = RecoveryRunResult()
    due = [
        case
        for case in service.cases.find(in_recovery_list=True)
        if is_due(case, now)
    ]
    due.sort(key=lambda c: ensure_utc(c.response_deadline))

    batch: list[tuple[Any, CampaignSelection]] = []
    for case in due:
        selection = selector.select(case)
        if selection is None:
            result.skipped += 1
            continue
        if len(batch) < limit:
            batch.append((case, selection))

    for case, selection in batch:
        try:
            await deliver(
                messaging, selection.channel, selection.recipient, selection.message, timeout_seconds
            )
            service.register_contact_attempt(
                case.id,
                f"Recovery campaign {selection.template.campaign_id} sent via {selection.channel.value}",
                succeeded=True,
                now=now,
                performed_by=SYSTEM_ACTOR,
            )
        except (AutomationError, SQLAlchemyError) as e:
            result.failed += 1
            result.errors.append(f"{case.id}: {e}")
            logger.warning(
                "Recovery message failed: %s",
                e,
                extra=build_log_context(job="recovery_campaign", case_id=case.id),
            )
            continue
        result.sent += 1

    logger.info(
        "Recovery campaign: sent=%d skipped=%d failed=%d", result.sent, result.skipped, result.failed
    )
    return result
