from __future__ import annotations

import math
from datetime import datetime
from typing import List

from croniter import croniter
from croniter.croniter import CroniterBadCronError, CroniterBadDateError

from cronbeat.errors import InvalidScheduleError
from cronbeat.models import ScheduleInterval

# Toleranz für verspätete Pings: 20% der Periode
GRACE_RATIO = 0.2

CRON_FIELD_COUNT = 5

MAX_DAY_OF_WEEK = 6


def _check_day_of_week(field: str) -> None:
    # croniter nimmt auch 7 für Sonntag, wir nur 0-6
    for item in field.split(","):
        value = item.split("/", 1)[0]
        for bound in value.split("-"):
            if bound.isdigit() and int(bound) > MAX_DAY_OF_WEEK:
                raise InvalidScheduleError(f"day-of-week {bound} out of range 0-{MAX_DAY_OF_WEEK}")


def compute_next_runs(schedule: str, *, start: datetime, count: int = 3) -> List[datetime]:
    """
    Berechnet die nächsten `count` Ausführungszeitpunkte aus einer Cron-Expression.

    Bei Fehlern -> [] (nur für die Vorschau gedacht, dort soll nichts crashen).
    """
    try:
        it = croniter(schedule, start)
        return [it.get_next(datetime) for _ in range(count)]
    except (CroniterBadCronError, CroniterBadDateError, ValueError):
        return []


def grace_for(period_seconds: int) -> int:
    return math.floor(period_seconds * GRACE_RATIO)


def compute_period_and_grace(cron_expr: str, reference_time: datetime) -> ScheduleInterval:
    """
    Derive the heartbeat period and grace window from a 5-field cron expression.

    The period is the spacing between the first two runs after
    `reference_time`, not the time until the next run, so the result does not
    depend on when the tool is invoked (for evenly spaced schedules).

    Raises InvalidScheduleError for anything that is not a plain
    minute/hour/dom/month/dow expression, or when croniter cannot find two
    consecutive runs within its search horizon.
    """
    fields = (cron_expr or "").split()
    if len(fields) != CRON_FIELD_COUNT:
        raise InvalidScheduleError(
            f"expected {CRON_FIELD_COUNT} cron fields, got {len(fields)}: {cron_expr!r}"
        )

    _check_day_of_week(fields[4])
    expr = " ".join(fields)
    try:
        it = croniter(expr, reference_time)
        first = it.get_next(datetime)
        second = it.get_next(datetime)
    except (CroniterBadCronError, CroniterBadDateError, ValueError, KeyError) as e:
        raise InvalidScheduleError(f"invalid cron expression {cron_expr!r}: {e}") from e

    period = int((second - first).total_seconds())
    if period <= 0:
        raise InvalidScheduleError(f"cron expression {cron_expr!r} does not advance")

    return ScheduleInterval(period_seconds=period, grace_seconds=grace_for(period))
