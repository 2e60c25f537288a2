from __future__ import annotations

from pathlib import Path
from typing import Optional


class CronbeatError(Exception):
    """Basis für alle Fehler, die cronbeat bewusst wirft."""


class InvalidUserError(CronbeatError):
    pass


class CrontabUnavailableError(CronbeatError):
    """The user has no crontab, or `crontab -l` failed."""


class CrontabIOError(CronbeatError, OSError):
    """Reading or writing the temp/backup copy of a crontab failed."""


class InvalidNameError(CronbeatError):
    pass


class InvalidScheduleError(CronbeatError):
    pass


class MissingURLError(CronbeatError):
    """A task reached the rewrite step without schedule, command or name."""


class InvalidURLError(CronbeatError):
    pass


class DuplicateAppendError(CronbeatError):
    """The matched crontab line already pings this heartbeat."""


class CommitError(CronbeatError):
    def __init__(self, message: str, output: str = "", backup_path: Optional[Path] = None):
        super().__init__(message)
        self.output = output
        self.backup_path = backup_path

    def __str__(self) -> str:
        msg = super().__str__()
        if self.output:
            msg = f"{msg}: {self.output}"
        if self.backup_path is not None:
            msg = f"{msg} (previous crontab saved in {self.backup_path})"
        return msg


class SessionStateError(CronbeatError):
    """A transaction step was called out of order."""


class HeartbeatAPIError(CronbeatError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UnmatchedTaskError(CronbeatError):
    """No crontab line contains the task's `schedule command` text."""
