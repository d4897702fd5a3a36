"""
Click CLI for running the controller and checking schedule expressions.
"""

import json
import sys
from datetime import datetime
from typing import Optional

import click

from .config import Settings
from .controller import run_control_loop
from .log import setup_logging
from .schedule import FIELD_DOMAINS, FieldKind, is_schedule_match, parse_schedule


@click.group()
def main():
    """
    Nodeman - tag-driven start/stop/terminate for EC2, RDS and Auto Scaling groups.
    """
    pass


@main.command("run")
@click.option("--region", help="AWS region (defaults to NODEMAN_REGION / AWS_REGION)")
@click.option("--max-concurrency", type=int, help="Maximum resources evaluated at once")
@click.option("--json", "output_json", is_flag=True, help="Output machine-readable JSON")
def run_cmd(region: Optional[str], max_concurrency: Optional[int], output_json: bool):
    """
    Run one control-loop pass.
    """
    try:
        settings = Settings.from_env()
        if region:
            settings.region = region
        if max_concurrency is not None:
            settings.max_concurrency = max_concurrency
        settings.validate()
    except ValueError as e:
        click.echo(str(e), err=True)
        sys.exit(2)

    setup_logging(settings.log_level)
    summary = run_control_loop(settings)

    if output_json:
        print(json.dumps(summary.to_dict()))
    else:
        click.echo(f"Evaluated {summary.evaluated} resources: {summary.succeeded} succeeded, {summary.failed} failed")
        for outcome in summary.outcomes:
            if outcome.actions:
                click.echo(f"  {outcome.resource}: {', '.join(outcome.actions)}")
            elif outcome.error:
                click.echo(f"  {outcome.resource}: ERROR {outcome.error}")
        for resource in summary.reactivation.started:
            click.echo(f"  {resource}: started (load balancer demand)")
        for error in summary.fetch_errors + summary.reactivation.errors:
            click.echo(f"  ERROR {error}")
        click.echo(f"Completed in {summary.duration_seconds:.2f} seconds")

    sys.exit(0 if summary.ok else 1)


@main.command("schedule")
@click.argument("expression")
@click.option("--at", "at", help="ISO timestamp to test (default: now)")
def schedule_cmd(expression: str, at: Optional[str]):
    """
    Show how EXPRESSION is parsed and whether it matches a given time.
    """
    try:
        instant = datetime.fromisoformat(at) if at else datetime.now(Settings.from_env().tzinfo)
    except ValueError as e:
        click.echo(f"Invalid timestamp: {at}" if at else str(e), err=True)
        sys.exit(2)

    schedule = parse_schedule(expression)
    for name, _, _ in FIELD_DOMAINS:
        field = getattr(schedule, name)
        if field.kind == FieldKind.ANY:
            values = "*"
        elif field.values:
            values = ",".join(str(v) for v in sorted(field.values))
        else:
            values = "(never)"
        click.echo(f"{name:>12}: {field.kind.value:<5} {values}")

    matched = is_schedule_match(schedule, instant)
    click.echo(f"{instant.isoformat()}: {'match' if matched else 'no match'}")
    sys.exit(0 if matched else 1)


if __name__ == "__main__":
    main()
