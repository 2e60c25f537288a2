from __future__ import annotations

import logging
import os
import re
import tempfile
from enum import Enum
from pathlib import Path
from typing import List, Optional, Protocol, Tuple
from urllib.parse import urlsplit

from cronbeat.config import DEFAULT_VENDOR_DOMAIN
from cronbeat.errors import (
    CommitError,
    CronbeatError,
    CrontabIOError,
    DuplicateAppendError,
    InvalidNameError,
    InvalidURLError,
    InvalidUserError,
    MissingURLError,
    SessionStateError,
    UnmatchedTaskError,
)
from cronbeat.models import CronTask, CrontabSnapshot
from cronbeat.services.cron_parsing import is_env_assignment, is_ignorable_line, parse_user_cron_line
from cronbeat.services.scheduler_gateway import SchedulerGateway

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,16}$")

# Zeichen, die später in der Shell Ärger machen würden
FORBIDDEN_NAME_CHARS = '";$|><&'

BACKUP_FILENAME = "crontab_backup.bak"

MONITOR_COMMAND_TEMPLATE = "curl -fs --retry 3 {url} > /dev/null 2>&1"


class SessionState(str, Enum):
    IDLE = "idle"
    LOADED = "loaded"
    REVIEWED = "reviewed"
    REWRITTEN = "rewritten"
    COMMITTED = "committed"
    FAILED = "failed"


class Decision(str, Enum):
    APPROVE = "approve-continue"
    SKIP = "skip-continue"
    SKIP_ALL = "skip-all-remaining"


class ApprovalSource(Protocol):
    """Whoever decides which crontab lines get a heartbeat."""

    def decide(self, line: str) -> Decision:
        ...

    def name_for(self, line: str) -> str:
        ...


def validate_user(user: str) -> str:
    if not isinstance(user, str) or not USERNAME_PATTERN.match(user):
        raise InvalidUserError(f"invalid crontab user: {user!r}")
    return user


def validate_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidNameError("heartbeat name must not be empty")
    bad =sorted({ch for ch in name if ch in FORBIDDEN_NAME_CHARS})
    if bad:
        raise InvalidNameError(f"heartbeat name {name!r} contains forbidden characters: {' '.join(bad)}")
    return name


def validate_url(url: Optional[str]) -> str:
    if not url or any(ch.isspace() for ch in url):
        raise InvalidURLError(f"invalid heartbeat URL: {url!r}")
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise InvalidURLError(f"heartbeat URL is not absolute: {url!r}")
    return url


def monitor_command(url: str) -> str:
    return MONITOR_COMMAND_TEMPLATE.format(url=url)


def apply_task(
    snapshot: CrontabSnapshot,
    task: CronTask,
    vendor_domain: str = DEFAULT_VENDOR_DOMAIN,
) -> CrontabSnapshot:
    """
    Append the heartbeat ping to every line containing `schedule command`.

    Matching is a plain substring test, so a task whose text also occurs in
    an unrelated line rewrites that line too. Schedule+command pairs have to
    be unique in the crontab. Lines that already mention `vendor_domain` are
    left alone; UnmatchedTaskError if no line was rewritten.
    """
    if not task.schedule or not task.command or not task.display_name:
        raise MissingURLError(f"task {task.cron_line!r} is missing schedule, command or name")
    url = validate_url(task.heartbeat_url)

    ping = monitor_command(url)
    needle = task.cron_line

    lines: List[str] = []
    matched = 0
    for line in snapshot.lines:
        if needle in line:
            if ping in line:
                raise DuplicateAppendError(f"line already pings {url}: {line}")
            if vendor_domain and vendor_domain in line:
                logger.info("leaving already monitored line alone: %s", line.strip())
            else:
                line = f"{line} && {ping}"
                matched += 1
        lines.append(line)

    if not matched:
        raise UnmatchedTaskError(f"no unmonitored crontab line contains {needle!r}")

    return snapshot.replace_lines(lines)


class CrontabSession:
    """
    One Load -> Review -> Rewrite -> Commit pass over a single user's crontab.

    The session owns the temp copy of the crontab and knows where the backup
    went. The backup is never removed; the temp file is removed on commit
    and on close(), which also runs when the session is used as a context
    manager.
    """

    def __init__(
        self,
        gateway: SchedulerGateway,
        *,
        vendor_domain: str = DEFAULT_VENDOR_DOMAIN,
        backup_dir: Optional[Path] = None,
    ):
        self.gateway = gateway
        self.vendor_domain = vendor_domain
        self.backup_dir = Path(backup_dir) if backup_dir is not None else Path.home()

        self.state = SessionState.IDLE
        self.failure_reason: Optional[str] = None
        self.user: Optional[str] = None
        self.snapshot: Optional[CrontabSnapshot] = None
        self.temp_path: Optional[Path] = None
        self.backup_path: Optional[Path] = None
        self.approved: List[CronTask] = []
        self.task_errors: List[Tuple[str, CronbeatError]] = []

    def __enter__(self) -> "CrontabSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            expected = ", ".join(s.value for s in states)
            raise SessionStateError(f"session is {self.state.value}, expected {expected}")

    def fail(self, error: Exception) -> None:
        self.state = SessionState.FAILED
        self.failure_reason = str(error)
        logger.error("crontab session failed: %s", error)

    def load(self, user: str) -> CrontabSnapshot:
        self._require(SessionState.IDLE)
        try:
            self.user = validate_user(user)
            raw_lines = self.gateway.dump(user)
            content = "\n".join(raw_lines) + "\n" if raw_lines else ""

            # Erst beide Kopien schreiben, dann wird irgendetwas angefasst
            try:
                fd, temp_name = tempfile.mkstemp(prefix="cronbeat-", suffix=".crontab")
                self.temp_path = Path(temp_name)
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(content)
                self.backup_path = self.backup_dir / BACKUP_FILENAME
                self.backup_path.write_text(content, encoding="utf-8")
                lines = self.temp_path.read_text(encoding="utf-8").splitlines()
            except OSError as e:
                raise CrontabIOError(f"failed to write temp/backup copy of crontab: {e}") from e
        except CronbeatError as e:
            self.fail(e)
            raise

        logger.info("crontab for %s backed up to %s", user, self.backup_path)
        self.snapshot = CrontabSnapshot(lines=tuple(lines), source=f"crontab -l ({user})")
        self.state = SessionState.LOADED
        return self.snapshot

    def review(self, approval: ApprovalSource) -> List[CronTask]:
        self._require(SessionState.LOADED)
        assert self.snapshot is not None

        approved: List[CronTask] = []
        for lineno, line in enumerate(self.snapshot.lines, start=1):
            if is_ignorable_line(line) or is_env_assignment(line):
                continue

            if self.vendor_domain and self.vendor_domain in line:
                logger.info("skipping line %s, already monitored: %s", lineno, line.strip())
                continue

            parsed = parse_user_cron_line(line)
            if parsed is None:
                logger.warning("skipping line %s, not a 5-field cron task: %s", lineno, line.strip())
                continue

            # Rewrite sucht später genau diesen Text, z.B. nicht bei Tabs zwischen den Feldern
            cron_line = f"{parsed.schedule} {parsed.command}"
            if cron_line not in line:
                e = UnmatchedTaskError(f"line {lineno} cannot be matched as {cron_line!r}")
                logger.warning("skipping line %s, fields not separated by single spaces: %s", lineno, line.strip())
                self.task_errors.append((line, e))
                continue

            decision = approval.decide(line)
            if decision is Decision.SKIP_ALL:
                logger.info("review stopped at line %s, remaining lines skipped", lineno)
                break
            if decision is not Decision.APPROVE:
                continue

            try:
                name = validate_name(approval.name_for(line))
            except InvalidNameError as e:
                logger.error("line %s not approved: %s", lineno, e)
                self.task_errors.append((line, e))
                continue

            approved.append(CronTask(schedule=parsed.schedule, command=parsed.command).with_name(name))

        self.approved = approved
        self.state = SessionState.REVIEWED
        return approved

    def rewrite(self, tasks: List[CronTask]) -> CrontabSnapshot:
        """
        Apply every task to the snapshot. A task that fails validation or
        would be appended twice is logged and left out; the others still go
        through.
        """
        self._require(SessionState.REVIEWED)
        assert self.snapshot is not None

        snapshot = self.snapshot
        for task in tasks:
            try:
                snapshot = apply_task(snapshot, task, self.vendor_domain)
            except (DuplicateAppendError, UnmatchedTaskError) as e:
                logger.info("not rewriting %r: %s", task.cron_line, e)
                self.task_errors.append((task.cron_line, e))
            except (MissingURLError, InvalidURLError) as e:
                logger.error("not rewriting %r: %s", task.cron_line, e)
                self.task_errors.append((task.cron_line, e))

        self.snapshot = snapshot
        self.state = SessionState.REWRITTEN
        return snapshot

    def commit(self) -> None:
        self._require(SessionState.REWRITTEN)
        assert self.snapshot is not None and self.temp_path is not None and self.user is not None

        try:
            try:
                self.temp_path.write_text(self.snapshot.render(), encoding="utf-8")
            except OSError as e:
                raise CrontabIOError(f"failed to write {self.temp_path}: {e}") from e

            try:
                self.gateway.install(self.user, self.temp_path)
            except CommitError as e:
                e.backup_path = self.backup_path
                raise
        except CronbeatError as e:
            self.fail(e)
            raise

        self.state = SessionState.COMMITTED
        self._remove_temp()
        logger.info("crontab for %s updated", self.user)

    def close(self) -> None:
        self._remove_temp()

    def _remove_temp(self) -> None:
        if self.temp_path is None:
            return
        try:
            self.temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("failed to remove temp file %s: %s", self.temp_path, e)
        self.temp_path = None
