"""Shared fixtures: an in-memory crontab store instead of the real `crontab` binary."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from cronbeat.config import reset_settings
from cronbeat.errors import CommitError, CrontabUnavailableError


class InMemoryGateway:
    def __init__(self, crontabs: Optional[Dict[str, List[str]]] = None, fail_install: bool = False):
        self.crontabs: Dict[str, List[str]] = dict(crontabs or {})
        self.fail_install = fail_install
        self.installed: List[tuple[str, str]] = []

    def dump(self, user: str) -> List[str]:
        if user not in self.crontabs:
            raise CrontabUnavailableError(f"no crontab for {user}")
        return list(self.crontabs[user])

    def install(self, user: str, crontab_file: Path) -> None:
        content = crontab_file.read_text(encoding="utf-8")
        if self.fail_install:
            raise CommitError("crontab refused the file", output='"-":3: bad minute')
        self.installed.append((user, content))
        self.crontabs[user] = content.splitlines()


SAMPLE_CRONTAB = [
    "# m h dom mon dow command",
    "MAILTO=ops@example.com",
    "",
    "*/10 * * * * /usr/bin/backup.sh",
    "0 3 * * * /usr/local/bin/rotate-logs --all",
    "*/5 * * * * /opt/check.sh && curl -fs --retry 3 https://uptime.betterstack.com/api/v1/heartbeat/xyz > /dev/null 2>&1",
]


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    for name in ("API_URL", "AUTH_TOKEN", "VENDOR_DOMAIN", "BACKUP_DIR", "HEARTBEAT_GROUP", "LOG_LEVEL", "HTTP_TIMEOUT"):
        monkeypatch.delenv(f"CRONBEAT_{name}", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway({"www-data": list(SAMPLE_CRONTAB)})


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    d = tmp_path / "home"
    d.mkdir()
    return d
