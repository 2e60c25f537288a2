from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from cronbeat.errors import CommitError, CrontabUnavailableError
from cronbeat.services import scheduler_gateway
from cronbeat.services.scheduler_gateway import CrontabCommandGateway


class FakeRun:
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.result = subprocess.CompletedProcess([], returncode, stdout, stderr)
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        return self.result


@pytest.fixture
def me(monkeypatch):
    monkeypatch.setattr(scheduler_gateway.getpass, "getuser", lambda: "alice")
    return "alice"


def test_dump_current_user(monkeypatch, me):
    run = FakeRun(stdout="0 * * * * /bin/a\n# c\n")
    monkeypatch.setattr(scheduler_gateway.subprocess, "run", run)

    assert CrontabCommandGateway().dump("alice") == ["0 * * * * /bin/a", "# c"]
    assert run.calls == [["crontab", "-l"]]


def test_dump_other_user(monkeypatch, me):
    run = FakeRun(stdout="")
    monkeypatch.setattr(scheduler_gateway.subprocess, "run", run)

    assert CrontabCommandGateway().dump("www-data") == []
    assert run.calls == [["crontab", "-u", "www-data", "-l"]]


def test_dump_no_crontab(monkeypatch, me):
    monkeypatch.setattr(scheduler_gateway.subprocess, "run", FakeRun(1, stderr="no crontab for alice\n"))
    with pytest.raises(CrontabUnavailableError, match="no crontab"):
        CrontabCommandGateway().dump("alice")


def test_dump_missing_binary(monkeypatch, me):
    def run(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(scheduler_gateway.subprocess, "run", run)
    with pytest.raises(CrontabUnavailableError, match="rc=127"):
        CrontabCommandGateway().dump("alice")


def test_install(monkeypatch, me, tmp_path: Path):
    run = FakeRun()
    monkeypatch.setattr(scheduler_gateway.subprocess, "run", run)
    f = tmp_path / "ct"
    CrontabCommandGateway().install("www-data", f)
    assert run.calls == [["crontab", "-u", "www-data", str(f)]]


def test_install_failure_carries_output(monkeypatch, me, tmp_path: Path):
    monkeypatch.setattr(scheduler_gateway.subprocess, "run", FakeRun(1, stderr='"-":2: bad hour\n'))
    with pytest.raises(CommitError) as excinfo:
        CrontabCommandGateway().install("alice", tmp_path / "ct")
    assert excinfo.value.output == '"-":2: bad hour'
