from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol

from cronbeat.config import DEFAULT_VENDOR_DOMAIN
from cronbeat.errors import HeartbeatAPIError, InvalidScheduleError
from cronbeat.models import CronTask, CronTaskPreview, HeartbeatConfig
from cronbeat.services.cron_parsing import parse_user_cron_line
from cronbeat.services.heartbeat_client import prepare_heartbeat_config
from cronbeat.services.schedule import compute_next_runs, compute_period_and_grace
from cronbeat.services.scheduler_gateway import SchedulerGateway
from cronbeat.services.transaction import ApprovalSource, CrontabSession, validate_user

logger = logging.getLogger(__name__)


class HeartbeatRegistrar(Protocol):
    def ensure_heartbeat_group(self, name: str) -> str:
        ...

    def create_heartbeat(self, config: HeartbeatConfig) -> str:
        ...


def register_heartbeats(
    session: CrontabSession,
    tasks: List[CronTask],
    registrar: HeartbeatRegistrar,
    *,
    reference_time: datetime,
    heartbeat_group_id: Optional[str] = None,
) -> List[CronTask]:
    """
    Create one heartbeat per approved task and return the tasks with their
    heartbeat URL attached. Tasks that cannot be registered are dropped and
    recorded in session.task_errors.
    """
    registered: List[CronTask] = []
    for task in tasks:
        try:
            config = prepare_heartbeat_config(
                task, reference_time=reference_time, heartbeat_group_id=heartbeat_group_id
            )
            url = registrar.create_heartbeat(config)
        except (InvalidScheduleError, HeartbeatAPIError) as e:
            logger.error("no heartbeat for %r: %s", task.cron_line, e)
            session.task_errors.append((task.cron_line, e))
            continue

        logger.info(
            "heartbeat %r created (period=%ss, grace=%ss): %s",
            config.name,
            config.period,
            config.grace,
            url,
        )
        registered.append(task.with_url(url))
    return registered


def instrument_crontab(
    user: str,
    *,
    gateway: SchedulerGateway,
    approval: ApprovalSource,
    registrar: HeartbeatRegistrar,
    vendor_domain: str = DEFAULT_VENDOR_DOMAIN,
    backup_dir: Optional[Path] = None,
    heartbeat_group: Optional[str] = None,
    reference_time: Optional[datetime] = None,
    install: bool = True,
) -> CrontabSession:
    """
    Full pass: load, review, register heartbeats, rewrite, commit.

    Fatal errors (bad user, no crontab, commit failure, heartbeat group
    lookup) propagate; the returned session carries per-task errors.
    With install=False the session stops in the rewritten state.
    """
    reference_time = reference_time or datetime.now()
    session = CrontabSession(gateway, vendor_domain=vendor_domain, backup_dir=backup_dir)
    with session:
        session.load(user)
        approved = session.review(approval)
        if not approved:
            logger.info("no cron tasks approved, crontab left unchanged")
            return session

        group_id = None
        if heartbeat_group:
            try:
                group_id = registrar.ensure_heartbeat_group(heartbeat_group)
            except HeartbeatAPIError as e:
                session.fail(e)
                raise

        registered = register_heartbeats(
            session, approved, registrar, reference_time=reference_time, heartbeat_group_id=group_id
        )
        if not registered:
            logger.warning("no heartbeat could be created, crontab left unchanged")
            return session

        session.rewrite(registered)
        if install:
            session.commit()
    return session


def preview_crontab(
    user: str,
    *,
    gateway: SchedulerGateway,
    vendor_domain: str = DEFAULT_VENDOR_DOMAIN,
    now: Optional[datetime] = None,
) -> List[CronTaskPreview]:
    """Read-only listing of a user's cron tasks with their heartbeat period."""
    validate_user(user)
    now = now or datetime.now()

    previews: List[CronTaskPreview] = []
    for line in gateway.dump(user):
        parsed = parse_user_cron_line(line)
        if not parsed:
            continue

        period = grace = None
        try:
            interval = compute_period_and_grace(parsed.schedule, now)
            period, grace = interval.period_seconds, interval.grace_seconds
        except InvalidScheduleError as e:
            logger.warning("failed to compute period for %r: %s", parsed.schedule, e)

        previews.append(
            CronTaskPreview(
                schedule=parsed.schedule,
                command=parsed.command,
                next_runs=compute_next_runs(parsed.schedule, start=now, count=3),
                period_seconds=period,
                grace_seconds=grace,
                monitored=bool(vendor_domain) and vendor_domain in line,
            )
        )
    return previews
