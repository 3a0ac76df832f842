import json

import pytest
from click.testing import CliRunner

from clinic_automation import cli as cli_module
from clinic_automation.runtime import build_runtime
from conftest import FakeClock, FakeMessaging


@pytest.fixture
def runtime(test_settings, session_factory, monkeypatch):
    runtime = build_runtime(
        test_settings, session_factory, messaging=FakeMessaging(), clock=FakeClock()
    )
    monkeypatch.setattr(cli_module, "build_runtime", lambda config: runtime)
    return runtime


def test_list_jobs(runtime):
    result = CliRunner().invoke(cli_module.cli, ["list-jobs"])

    assert result.exit_code == 0
    assert "automation_rules" in result.output
    assert "cron '0 0 * * *' (UTC)" in result.output


def test_seed_rules_is_idempotent(runtime):
    first = CliRunner().invoke(cli_module.cli, ["seed-rules"])
    second = CliRunner().invoke(cli_module.cli, ["seed-rules"])

    assert "Created 7 default rule(s)" in first.output
    assert "nothing to seed" in second.output
    assert len(runtime.rules.list_rules()) == 7


def test_run_job_prints_summary(runtime):
    result = CliRunner().invoke(cli_module.cli, ["run-job", "noshow_protocol"])

    assert result.exit_code == 0
    assert json.loads(result.output) == {
        "processed": 0,
        "marked_lost": 0,
        "upcoming_alerts": 0,
        "failed": 0,
    }


def test_run_job_unknown_name_fails(runtime):
    result = CliRunner().invoke(cli_module.cli, ["run-job", "nightly_backup"])

    assert result.exit_code == 1
    assert "Unknown job type: nightly_backup" in result.output
