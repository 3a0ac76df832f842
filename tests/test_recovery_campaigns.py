from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from clinic_automation.core.motive_catalog import RECOVERY_CAMPAIGNS, RecoveryCampaignTemplate
from clinic_automation.db.enums import MessagingChannel
from clinic_automation.services.recovery_campaigns import (
    RecoveryCampaignSelector,
    run_recovery_campaign,
)
from conftest import NOW, FakeMessaging


def _listed_case(**overrides):
    fields = {
        "patient_name": "Ana Garcia",
        "patient_phone": "+5215550000003",
        "contact_channel": "WhatsApp",
        "social_sender_id": None,
        "motive": "Olvido",
        "campaign_id": "RECOVERY_Olvido",
        "in_recovery_list": True,
        "blocked_flag": False,
        "lost_flag": False,
        "follow_up_state": "InFollowUp",
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def selector():
    return RecoveryCampaignSelector()


@pytest.fixture
def listed_case(noshow_service, open_case):
    """Open a case and put it on the recovery list as Economico, due now."""

    def _make(**overrides):
        case = open_case(**overrides)
        return noshow_service.assign_motive(case.id, "Economico", now=NOW - timedelta(days=3))

    return _make


def test_selector_picks_template_and_personalises(selector):
    selection = selector.select(_listed_case())

    assert selection.template.campaign_id == "RECOVERY_Olvido"
    assert selection.channel == MessagingChannel.WHATSAPP
    assert selection.recipient == "+5215550000003"
    assert selection.message.startswith("Hi Ana,")


def test_selector_derives_campaign_from_motive(selector):
    selection = selector.select(_listed_case(campaign_id=None, motive="Salud"))
    assert selection.template.campaign_id == "RECOVERY_Salud"


def test_selector_uses_social_channel_of_origin(selector):
    selection = selector.select(
        _listed_case(contact_channel="Facebook", social_sender_id="psid-4411")
    )
    assert selection.channel == MessagingChannel.FACEBOOK
    assert selection.recipient == "psid-4411"


def test_selector_social_origin_without_sender_id_uses_phone(selector):
    selection = selector.select(_listed_case(contact_channel="Instagram"))

    assert selection.channel == MessagingChannel.WHATSAPP
    assert selection.recipient == "+5215550000003"


def test_selector_never_targets_blocked_or_closed_cases(selector):
    assert selector.select(_listed_case(blocked_flag=True)) is None
    assert selector.select(_listed_case(follow_up_state="Lost", lost_flag=True)) is None
    assert selector.select(_listed_case(in_recovery_list=False)) is None


def test_selector_skips_inactive_templates():
    template = RECOVERY_CAMPAIGNS["RECOVERY_Olvido"]
    inactive = RecoveryCampaignTemplate(
        template.campaign_id, template.name, template.message, template.wait_days, active=False
    )
    selector = RecoveryCampaignSelector(templates={inactive.campaign_id: inactive})

    assert selector.select(_listed_case()) is None


@pytest.mark.asyncio
async def test_campaign_sends_and_registers_attempt(noshow_service, selector, listed_case):
    case = listed_case()
    messaging = FakeMessaging()

    result = await run_recovery_campaign(noshow_service, selector, messaging, NOW)

    assert (result.sent, result.skipped, result.failed) == (1, 0, 0)
    channel, recipient, text = messaging.sent[0]
    assert (channel, recipient) == ("whatsapp", "+5215550000003")
    assert "flexible payment plans" in text

    stored = noshow_service.get_case(case.id)
    assert stored.contact_attempts == 1
    assert stored.next_attempt_at == NOW + timedelta(days=2)
    assert "RECOVERY_Economico" in stored.contact_notes[-1]


@pytest.mark.asyncio
async def test_campaign_waits_for_next_attempt(noshow_service, selector, listed_case):
    listed_case()
    messaging = FakeMessaging()
    await run_recovery_campaign(noshow_service, selector, messaging, NOW)

    again = await run_recovery_campaign(noshow_service, selector, messaging, NOW + timedelta(hours=1))

    assert again.sent == 0
    assert len(messaging.sent) == 1


@pytest.mark.asyncio
async def test_campaign_failure_leaves_case_untouched(noshow_service, selector, listed_case):
    case = listed_case()

    result = await run_recovery_campaign(
        noshow_service, selector, FakeMessaging(error="quota exceeded"), NOW
    )

    assert result.failed == 1
    assert "quota exceeded" in result.errors[0]
    assert noshow_service.get_case(case.id).contact_attempts == 0


@pytest.mark.asyncio
async def test_campaign_respects_daily_limit_most_urgent_first(
    noshow_service, selector, listed_case
):
    urgent = listed_case(missed_at=NOW - timedelta(days=5))
    middle = listed_case(missed_at=NOW - timedelta(days=4))
    listed_case(missed_at=NOW - timedelta(days=3))
    messaging = FakeMessaging()

    result = await run_recovery_campaign(noshow_service, selector, messaging, NOW, limit=2)

    assert result.sent == 2
    assert noshow_service.get_case(urgent.id).contact_attempts == 1
    assert noshow_service.get_case(middle.id).contact_attempts == 1


@pytest.mark.asyncio
async def test_campaign_skips_blocked_patients(noshow_service, selector, listed_case):
    case = listed_case()
    noshow_service.assign_motive(case.id, "RazaBrava", now=NOW)
    messaging = FakeMessaging()

    result = await run_recovery_campaign(noshow_service, selector, messaging, NOW)

    assert result.sent == 0
    assert messaging.sent == []


@pytest.mark.asyncio
async def test_campaign_sends_to_social_sender_id(noshow_service, selector, open_case):
    case = open_case(contact_channel="Instagram", social_sender_id="ig-2201")
    noshow_service.assign_motive(case.id, "Olvido", now=NOW - timedelta(days=3))
    messaging = FakeMessaging()

    await run_recovery_campaign(noshow_service, selector, messaging, NOW)

    assert messaging.sent[0][:2] == ("instagram", "ig-2201")


@pytest.mark.asyncio
async def test_skipped_cases_do_not_use_up_daily_limit(noshow_service, open_case):
    unsendable = open_case(missed_at=NOW - timedelta(days=5))
    noshow_service.assign_motive(unsendable.id, "Economico", now=NOW - timedelta(days=3))
    sendable = open_case(missed_at=NOW - timedelta(days=4))
    noshow_service.assign_motive(sendable.id, "Olvido", now=NOW - timedelta(days=3))
    selector = RecoveryCampaignSelector(
        templates={"RECOVERY_Olvido": RECOVERY_CAMPAIGNS["RECOVERY_Olvido"]}
    )
    messaging = FakeMessaging()

    result = await run_recovery_campaign(noshow_service, selector, messaging, NOW, limit=1)

    assert (result.sent, result.skipped) == (1, 1)
    assert noshow_service.get_case(sendable.id).contact_attempts == 1


@pytest.mark.asyncio
async def test_database_error_on_one_case_does_not_stop_campaign(
    noshow_service, selector, listed_case, monkeypatch
):
    first = listed_case(missed_at=NOW - timedelta(days=5))
    second = listed_case(missed_at=NOW - timedelta(days=4))
    register = noshow_service.register_contact_attempt

    def flaky_register(case_id, *args, **kwargs):
        if case_id == first.id:
            raise OperationalError("UPDATE noshow_cases", {}, Exception("database is locked"))
        return register(case_id, *args, **kwargs)

    monkeypatch.setattr(noshow_service, "register_contact_attempt", flaky_register)

    result = await run_recovery_campaign(noshow_service, selector, FakeMessaging(), NOW)

    assert (result.sent, result.failed) == (1, 1)
    assert "database is locked" in result.errors[0]
    assert noshow_service.get_case(second.id).contact_attempts == 1
