"""Command line entry point: `cronbeat run`, `cronbeat period`, `cronbeat preview`."""

import getpass
import json
import logging
from datetime import datetime
from typing import Optional

import typer

from cronbeat.config import Settings, get_settings
from cronbeat.errors import CommitError, CronbeatError, InvalidScheduleError
from cronbeat.prompts import ConsoleApprovalSource, prompt_auth_token
from cronbeat.services.heartbeat_client import FakeHeartbeatClient, HeartbeatClient
from cronbeat.services.runner import instrument_crontab, preview_crontab
from cronbeat.services.schedule import compute_period_and_grace
from cronbeat.services.scheduler_gateway import CrontabCommandGateway, SchedulerGateway
from cronbeat.services.transaction import SessionState

app = typer.Typer(
    name="cronbeat",
    help="Create Better Stack heartbeats for cron tasks and wire them into the crontab.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)


def make_gateway() -> SchedulerGateway:
    return CrontabCommandGateway()


def make_client(settings: Settings, auth_token: str) -> HeartbeatClient:
    return HeartbeatClient(auth_token, api_url=settings.api_url, timeout=settings.http_timeout)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    settings = get_settings()
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@app.command("run")
def run(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Crontab user to edit (default: current user)"),
    auth_token: Optional[str] = typer.Option(None, "--auth-token", "-a", help="Better Stack API token"),
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Heartbeat group name"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Fake heartbeats, do not install the crontab"),
):
    """Review the crontab, create heartbeats and append the pings."""
    settings = get_settings()
    user = user or getpass.getuser()
    group = group or settings.heartbeat_group

    if dry_run:
        registrar = FakeHeartbeatClient()
    else:
        token = auth_token or settings.auth_token or prompt_auth_token()
        registrar = make_client(settings, token)

    try:
        with registrar:
            session = instrument_crontab(
                user,
                gateway=make_gateway(),
                approval=ConsoleApprovalSource(),
                registrar=registrar,
                vendor_domain=settings.vendor_domain,
                backup_dir=settings.backup_dir,
                heartbeat_group=group,
                install=not dry_run,
            )
    except CommitError as e:
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Your previous crontab is in {e.backup_path}", err=True)
        raise typer.Exit(1)
    except CronbeatError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    for what, err in session.task_errors:
        typer.echo(f"Skipped {what}: {err}", err=True)

    if session.state == SessionState.COMMITTED:
        typer.echo("Cron tasks updated successfully.")
    elif dry_run and session.snapshot is not None and session.state == SessionState.REWRITTEN:
        typer.echo("Dry run, crontab not installed. Result would be:")
        typer.echo(session.snapshot.render(), nl=False)
    else:
        typer.echo("Crontab left unchanged.")


@app.command("period")
def period(
    schedule: str = typer.Argument(..., help='Cron expression, e.g. "*/5 * * * *"'),
    name: str = typer.Option("", "--name", "-n", help="Heartbeat name to include"),
):
    """Print the heartbeat period/grace for a cron expression."""
    try:
        interval = compute_period_and_grace(schedule, datetime.now())
    except InvalidScheduleError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    payload = {"period": interval.period_seconds, "grace": interval.grace_seconds}
    if name:
        payload = {"name": name, **payload}
    typer.echo(json.dumps(payload, indent=2))


@app.command("preview")
def preview(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Crontab user (default: current user)"),
):
    """List cron tasks with their heartbeat period, without changing anything."""
    settings = get_settings()
    try:
        tasks = preview_crontab(
            user or getpass.getuser(), gateway=make_gateway(), vendor_domain=settings.vendor_domain
        )
    except CronbeatError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if not tasks:
        typer.echo("No cron tasks found")
        return

    for task in tasks:
        marker = "*" if task.monitored else " "
        if task.period_seconds is None:
            timing = "period=?"
        else:
            timing = f"period={task.period_seconds}s grace={task.grace_seconds}s"
        typer.echo(f"{marker} {task.schedule}  {task.command}  ({timing})")


if __name__ == "__main__":
    app()
