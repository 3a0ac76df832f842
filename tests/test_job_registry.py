from datetime import timedelta

import pytest

from clinic_automation.db.enums import SchedulerJob
from clinic_automation.jobs.registry import JOB_DESCRIPTIONS, JOB_HANDLERS, resolve_job_handler
from clinic_automation.runtime import build_runtime, job_cron
from conftest import NOW, FakeClock, FakeMessaging


@pytest.fixture
def runtime(test_settings, session_factory):
    runtime = build_runtime(
        test_settings, session_factory, messaging=FakeMessaging(), clock=FakeClock()
    )
    runtime.scheduler.autopoll = False
    return runtime


def test_every_scheduler_job_has_a_handler():
    assert set(JOB_HANDLERS) == {job.value for job in SchedulerJob}
    assert set(JOB_DESCRIPTIONS) == set(JOB_HANDLERS)


def test_resolve_job_handler_unknown():
    with pytest.raises(ValueError, match="Unknown job type: nightly_backup"):
        resolve_job_handler("nightly_backup")


def test_job_cron_reads_settings(test_settings):
    assert job_cron(test_settings, SchedulerJob.NOSHOW_PROTOCOL) == test_settings.NOSHOW_PROTOCOL_CRON


def test_runtime_registers_enabled_jobs(runtime):
    assert runtime.scheduler.job_names == [job.value for job in SchedulerJob]
    status = runtime.scheduler.get_status("recovery_campaign")
    assert status.schedule == "cron '0 9 * * *' (UTC)"


def test_disabled_jobs_are_not_registered(test_settings, session_factory):
    config = test_settings.model_copy(update={"DISABLED_JOBS": "recovery_campaign, mark_no_shows"})

    runtime = build_runtime(config, session_factory, messaging=FakeMessaging(), clock=FakeClock())

    assert "recovery_campaign" not in runtime.scheduler.job_names
    assert "mark_no_shows" not in runtime.scheduler.job_names
    assert "automation_rules" in runtime.scheduler.job_names


def test_seed_default_rules_on_build(test_settings, session_factory):
    config = test_settings.model_copy(update={"SEED_DEFAULT_RULES": True})

    runtime = build_runtime(config, session_factory, messaging=FakeMessaging(), clock=FakeClock())

    assert len(runtime.rules.list_rules()) == 7


@pytest.mark.asyncio
async def test_automation_rules_job(runtime, make_contact, make_rule):
    make_contact()
    make_rule()

    result = await runtime.run_job("automation_rules")

    assert result == {"executions": 1, "outcomes": {"success": 1}}


@pytest.mark.asyncio
async def test_noshow_protocol_job(runtime, open_case):
    open_case(missed_at=NOW - timedelta(days=9))
    open_case(missed_at=NOW - timedelta(days=5, hours=1))

    result = await runtime.run_job("noshow_protocol")

    assert result == {"processed": 2, "marked_lost": 1, "upcoming_alerts": 1, "failed": 0}


@pytest.mark.asyncio
async def test_noshow_deadline_alerts_job(runtime, open_case, caplog):
    open_case(missed_at=NOW - timedelta(days=5, hours=1))
    open_case(missed_at=NOW - timedelta(days=1))

    with caplog.at_level("WARNING"):
        result = await runtime.run_job("noshow_deadline_alerts")

    assert result == {"alerts": 1}
    assert "close to deadline" in caplog.text


@pytest.mark.asyncio
async def test_recovery_campaign_job(runtime, noshow_service, open_case):
    case = open_case()
    noshow_service.assign_motive(case.id, "Olvido", now=NOW - timedelta(days=1))

    result = await runtime.run_job("recovery_campaign")

    assert result == {"sent": 1, "skipped": 0, "failed": 0}
    assert len(runtime.messaging.sent) == 1


@pytest.mark.asyncio
async def test_appointment_jobs(runtime, make_appointment):
    make_appointment(scheduled_at=NOW - timedelta(hours=2))
    make_appointment(scheduled_at=NOW + timedelta(hours=2))

    marked = await runtime.run_job("mark_no_shows")
    reminded = await runtime.run_job("appointment_reminders")

    assert marked == {"marked": 1, "cases_opened": 1, "failed": 0}
    assert reminded == {"sent": 1, "failed": 0}


@pytest.mark.asyncio
async def test_scheduled_callback_runs_handler(runtime, make_contact, make_rule):
    make_contact()
    make_rule()

    result = await runtime.scheduler.run_now("automation_rules")

    assert result.success is True
    assert result.result["executions"] == 1
