from __future__ import annotations

import getpass
import logging
import subprocess
from pathlib import Path
from typing import List, Protocol

from cronbeat.errors import CommitError, CrontabUnavailableError

logger = logging.getLogger(__name__)


def _run_command(cmd: list[str]) -> tuple[int, str, str]:
    """
    Führt einen Command aus und liefert (returncode, stdout, stderr).
    Wirft keine Exception bei non-zero Exit Codes.
    """
    try:
        p = subprocess.run(cmd, capture_output=True, text=True, check=False)
        return p.returncode, p.stdout or "", p.stderr or ""
    except FileNotFoundError:
        logger.warning("command not found: %s", cmd[0])
        return 127, "", f"command not found: {cmd[0]}"


class SchedulerGateway(Protocol):
    """Access to the system's per-user crontab store."""

    def dump(self, user: str) -> List[str]:
        ...

    def install(self, user: str, crontab_file: Path) -> None:
        ...


class CrontabCommandGateway:
    """
    Talks to cron through the `crontab` binary.

    For the invoking user the plain `crontab -l` / `crontab FILE` forms are
    used; other users need `-u USER`, which normally requires root.
    """

    def __init__(self, binary: str = "crontab"):
        self.binary = binary

    def _base_cmd(self, user: str) -> list[str]:
        if user == getpass.getuser():
            return [self.binary]
        return [self.binary, "-u", user]

    def dump(self, user: str) -> List[str]:
        rc, out, err = _run_command(self._base_cmd(user) + ["-l"])
        if rc != 0:
            msg = (err or out).strip()
            if "no crontab for" in msg.lower():
                raise CrontabUnavailableError(f"no crontab for {user}")
            raise CrontabUnavailableError(f"crontab -l failed for {user} (rc={rc}): {msg}")
        return out.splitlines()

    def install(self, user: str, crontab_file: Path) -> None:
        rc, out, err = _run_command(self._base_cmd(user) + [str(crontab_file)])
        if rc != 0:
            raise CommitError(
                f"failed to install crontab for {user} (rc={rc})",
                output=(err or out).strip(),
            )
        logger.info("installed crontab for %s from %s", user, crontab_file)
