from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ParsedCronLine:
    schedule: str
    command: str


def is_ignorable_line(line: str) -> bool:
    """
    True, wenn eine Zeile kein Cronjob ist und ohne Warning übersprungen werden darf:
    - leer
    - Kommentar (#)
    """
    s = line.strip()
    return not s or s.startswith("#")


def is_env_assignment(line: str) -> bool:
    # ENV lines like PATH=..., MAILTO=..., SHELL=...
    first = line.strip().split(maxsplit=1)[0] if line.strip() else ""
    if "=" not in first or first.startswith("@"):
        return False
    key = first.split("=", 1)[0]
    return bool(key) and all(ch.isalnum() or ch == "_" for ch in key)


def parse_user_cron_line(line: str) -> Optional[ParsedCronLine]:
    """
    Parses a line from a user crontab (`crontab -l`).
    Format:
      - Standard: m h dom mon dow command...
    The schedule fields are re-joined with single spaces; the command is the
    rest of the line as written (internal whitespace kept).
    Returns None for empty lines, comments, ENV assignments, @specials and
    lines with fewer than 6 fields.
    """
    if is_ignorable_line(line) or is_env_assignment(line):
        return None

    raw = line.strip()
    if raw.startswith("@"):
        return None

    parts = raw.split(None, 5)
    if len(parts) < 6:
        return None

    return ParsedCronLine(schedule=" ".join(parts[:5]), command=parts[5])
