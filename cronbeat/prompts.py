from __future__ import annotations

from typing import Iterable, Iterator, Optional, Tuple

import typer

from cronbeat.services.transaction import Decision

_ANSWERS = {
    "y": Decision.APPROVE,
    "n": Decision.SKIP,
    "N": Decision.SKIP_ALL,
}


class ConsoleApprovalSource:
    """Asks the operator on the terminal, one crontab line at a time."""

    def decide(self, line: str) -> Decision:
        typer.echo(f"Cron task: {line}")
        answer = typer.prompt(
            "Monitor this task? (n skips this task, N skips all remaining) (y/n/N)",
            default="n",
            show_default=False,
        )
        # "N" ist case-sensitiv, alles Unbekannte zählt als "n"
        return _ANSWERS.get(answer.strip(), Decision.SKIP)

    def name_for(self, line: str) -> str:
        return typer.prompt("Name for the heartbeat").strip()


class ScriptedApprovalSource:
    """
    Replays prepared (decision, name) pairs.

    Used by tests and for non-interactive runs; once the script is used up
    every further line is skipped.
    """

    def __init__(self, answers: Iterable[Tuple[Decision, Optional[str]]]):
        self._answers: Iterator[Tuple[Decision, Optional[str]]] = iter(answers)
        self._pending_name: Optional[str] = None
        self.seen: list[str] = []

    def decide(self, line: str) -> Decision:
        self.seen.append(line)
        try:
            decision, name = next(self._answers)
        except StopIteration:
            return Decision.SKIP_ALL
        self._pending_name = name
        return decision

    def name_for(self, line: str) -> str:
        return self._pending_name or ""


def prompt_auth_token() -> str:
    return typer.prompt("Authentication token for the Better Stack API", hide_input=True).strip()
