"""Process wiring: stores, engine, no-show service and scheduler.

`build_runtime` is the only place collaborators are constructed. The API,
the worker and the CLI each build one runtime and pass it explicitly.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from clinic_automation.core.config import Settings
from clinic_automation.db.enums import MessagingChannel, SchedulerJob
from clinic_automation.db.models import Appointment, ContactRequest, NoShowCase
from clinic_automation.jobs.orchestrator import SchedulerOrchestrator
from clinic_automation.jobs.registry import JOB_DESCRIPTIONS, resolve_job_handler
from clinic_automation.jobs.schedules import Clock, CronSchedule
from clinic_automation.services.messaging import MessagingPort, build_messaging_client
from clinic_automation.services.noshow_service import NoShowService
from clinic_automation.services.record_store import SqlRecordStore
from clinic_automation.services.recovery_campaigns import RecoveryCampaignSelector
from clinic_automation.services.rule_engine import RuleEngine
from clinic_automation.services.rule_seed import seed_rules_if_empty
from clinic_automation.services.rule_store import SqlRuleStore

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    config: Settings
    session_factory: sessionmaker[Session]
    rules: SqlRuleStore
    contacts: SqlRecordStore[ContactRequest]
    appointments: SqlRecordStore[Appointment]
    cases: SqlRecordStore[NoShowCase]
    messaging: MessagingPort
    engine: RuleEngine
    noshow: NoShowService
    selector: RecoveryCampaignSelector
    scheduler: SchedulerOrchestrator

    def now(self) -> datetime:
        return self.scheduler.clock.now()

    async def run_job(self, name: str) -> Any:
        """Run one job handler directly, outside the scheduler."""
        handler = resolve_job_handler(name)
        return await handler(self, self.now())


def job_cron(config: Settings, job: SchedulerJob) -> str:
    return getattr(config, f"{job.name}_CRON")


def register_jobs(runtime: Runtime) -> list[str]:
    """Register every enabled job on the runtime's scheduler."""
    config = runtime.config
    disabled = set(config.disabled_jobs_list)
    registered = []
    for job in SchedulerJob:
        if job.value in disabled:
            logger.info("Job %s disabled by configuration", job.value)
            continue
        handler = resolve_job_handler(job.value)

        async def callback(now: datetime, handler=handler) -> Any:
            return await handler(runtime, now)

        runtime.scheduler.register(
            job.value,
            CronSchedule(job_cron(config, job), config.SCHEDULER_TIMEZONE),
            callback,
            JOB_DESCRIPTIONS[job.value],
        )
        registered.append(job.value)
    return registered


def build_runtime(
    config: Settings,
    session_factory: sessionmaker[Session] | None = None,
    *,
    messaging: MessagingPort | None = None,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> Runtime:
    if session_factory is None:
        from clinic_automation.db.session import SessionLocal

        session_factory = SessionLocal

    default_channel = MessagingChannel(config.DEFAULT_MESSAGING_CHANNEL)
    messaging = messaging or build_messaging_client(config)
    rules = SqlRuleStore(session_factory)
    contacts = SqlRecordStore(session_factory, ContactRequest)
    appointments = SqlRecordStore(session_factory, Appointment)
    cases = SqlRecordStore(session_factory, NoShowCase)

    engine = RuleEngine(
        rules,
        contacts,
        messaging,
        appointments=appointments,
        default_channel=default_channel,
        timezone=config.SCHEDULER_TIMEZONE,
        messaging_timeout=config.MESSAGING_TIMEOUT_SECONDS,
        rng=rng,
    )
    runtime = Runtime(
        config=config,
        session_factory=session_factory,
        rules=rules,
        contacts=contacts,
        appointments=appointments,
        cases=cases,
        messaging=messaging,
        engine=engine,
        noshow=NoShowService(cases),
        selector=RecoveryCampaignSelector(default_channel=default_channel),
        scheduler=SchedulerOrchestrator(
            clock,
            poll_interval=config.SCHEDULER_POLL_INTERVAL_SECONDS,
            settle_seconds=config.SCHEDULER_RESTART_SETTLE_SECONDS,
        ),
    )
    register_jobs(runtime)

    if config.SEED_DEFAULT_RULES:
        seed_rules_if_empty(rules)
    return runtime
