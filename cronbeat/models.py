from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class CronTask(BaseModel):
    """
    Eine Zeile aus der User-Crontab, die überwacht werden soll.

    schedule/command are fixed when the line is parsed. The name is attached
    during review and the heartbeat URL after registration; both via copies,
    the model itself is frozen.
    """

    model_config = ConfigDict(frozen=True)

    schedule: str
    command: str
    display_name: str = ""
    heartbeat_url: Optional[str] = None

    @property
    def cron_line(self) -> str:
        return f"{self.schedule} {self.command}"

    def with_name(self, name: str) -> "CronTask":
        return self.model_copy(update={"display_name": name})

    def with_url(self, url: str) -> "CronTask":
        return self.model_copy(update={"heartbeat_url": url})


class ScheduleInterval(BaseModel):
    model_config = ConfigDict(frozen=True)

    period_seconds: int
    grace_seconds: int


class CrontabSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    lines: Tuple[str, ...]

    # Woher stammt der Stand? z.B. "crontab -l (www-data)" oder ein Dateipfad
    source: str = Field(default="unknown")

    def replace_lines(self, lines: List[str]) -> "CrontabSnapshot":
        return CrontabSnapshot(lines=tuple(lines), source=self.source)

    def render(self) -> str:
        if not self.lines:
            return ""
        return "\n".join(self.lines) + "\n"


class HeartbeatConfig(BaseModel):
    """Request body for POST /heartbeats."""

    name: str
    period: int
    grace: int
    heartbeat_group_id: Optional[str] = None


class CronTaskPreview(BaseModel):
    schedule: str
    command: str
    next_runs: List[datetime]
    period_seconds: Optional[int] = None
    grace_seconds: Optional[int] = None

    # True, wenn die Zeile bereits einen Heartbeat pingt
    monitored: bool = False
