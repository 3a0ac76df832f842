"""CLI tools for clinic automation administration."""

import asyncio
import json

import click

from clinic_automation.core.config import settings
from clinic_automation.core.errors import ValidationError
from clinic_automation.runtime import build_runtime
from clinic_automation.services.rule_seed import seed_rules_if_empty


@click.group()
def cli():
    """Clinic automation CLI tools."""
    pass


@cli.command()
def seed_rules():
    """
    Seed the default automation rules.

    Does nothing when the rules table already has rules.

    Example:
        clinic-automation seed-rules
    """
    runtime = build_runtime(settings)
    try:
        created = seed_rules_if_empty(runtime.rules)
    except ValidationError as e:
        click.echo(f"❌ Invalid default rule: {e}")
        raise SystemExit(1)
    if created:
        click.echo(f"✓ Created {created} default rule(s)")
    else:
        click.echo("✓ Rules already present, nothing to seed")


@cli.command()
@click.argument("name")
def run_job(name: str):
    """
    Run one scheduler job once and print its summary.

    Example:
        clinic-automation run-job noshow_protocol
    """
    runtime = build_runtime(settings)
    try:
        result = asyncio.run(runtime.run_job(name))
    except ValueError as e:
        click.echo(f"❌ {e}")
        raise SystemExit(1)
    click.echo(json.dumps(result, indent=2, default=str))


@cli.command()
def list_jobs():
    """List registered jobs and their schedules."""
    runtime = build_runtime(settings)
    for status in runtime.scheduler.statuses():
        click.echo(f"{status.name:<24} {status.schedule:<40} {status.description}")


if __name__ == "__main__":
    cli()
