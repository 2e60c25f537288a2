from __future__ import annotations

from datetime import datetime

import pytest

from cronbeat.errors import InvalidScheduleError
from cronbeat.services.schedule import GRACE_RATIO, compute_next_runs, compute_period_and_grace


REFERENCE_TIMES = [
    datetime(2024, 1, 1, 0, 0),
    datetime(2024, 2, 29, 23, 58, 13),
    datetime(2024, 6, 15, 12, 3, 59),
    datetime(2025, 12, 31, 23, 59, 59),
]


@pytest.mark.parametrize("reference", REFERENCE_TIMES)
def test_every_five_minutes(reference):
    interval = compute_period_and_grace("*/5 * * * *", reference)
    assert interval.period_seconds == 300
    assert interval.grace_seconds == 60


@pytest.mark.parametrize(
    "expr, period",
    [
        ("* * * * *", 60),
        ("0 * * * *", 3600),
        ("30 2 * * *", 86400),
        ("0 0 * * 1", 7 * 86400),
        ("*/10 * * * *", 600),
    ],
)
def test_period_is_spacing_between_runs(expr, period):
    interval = compute_period_and_grace(expr, datetime(2024, 3, 6, 10, 17))
    assert interval.period_seconds == period
    assert interval.grace_seconds == int(period * GRACE_RATIO)


def test_period_not_time_until_next_run():
    # next run is one minute away, but the runs are an hour apart
    interval = compute_period_and_grace("0 * * * *", datetime(2024, 3, 6, 10, 59))
    assert interval.period_seconds == 3600


def test_grace_is_floored():
    # weekday schedule seen from a Thursday: Friday -> Monday
    interval = compute_period_and_grace("7 9 * * 1-5", datetime(2024, 3, 7, 12, 0))
    assert interval.period_seconds == 3 * 86400
    assert interval.grace_seconds == (3 * 86400) // 5


@pytest.mark.parametrize(
    "expr",
    ["*/5 * * * *", "15 4 1 * *", "0 12 * 6 0", "1,2,3 */2 * * *"],
)
def test_properties_hold(expr):
    interval = compute_period_and_grace(expr, datetime(2024, 5, 1))
    assert interval.period_seconds > 0
    assert interval.grace_seconds == int(interval.period_seconds * 0.2)
    assert interval.grace_seconds <= interval.period_seconds


def test_extra_whitespace_is_accepted():
    interval = compute_period_and_grace("  */5   *  * * *  ", datetime(2024, 5, 1))
    assert interval.period_seconds == 300


@pytest.mark.parametrize(
    "expr",
    [
        "",
        "* * * *",
        "0 * * * * *",
        "@daily",
        "60 * * * *",
        "* 24 * * *",
        "* * 32 * *",
        "* * * 13 *",
        "foo * * * *",
        "* * * * 7",
        "0 9 * * 1-7",
        "0 9 * * 0,8",
    ],
)
def test_invalid_expressions(expr):
    with pytest.raises(InvalidScheduleError):
        compute_period_and_grace(expr, datetime(2024, 5, 1))


def test_compute_next_runs():
    runs = compute_next_runs("0 3 * * *", start=datetime(2024, 1, 1, 12, 0), count=3)
    assert runs == [
        datetime(2024, 1, 2, 3, 0),
        datetime(2024, 1, 3, 3, 0),
        datetime(2024, 1, 4, 3, 0),
    ]


def test_compute_next_runs_invalid_returns_empty():
    assert compute_next_runs("not a cron", start=datetime(2024, 1, 1)) == []


def test_day_of_week_zero_to_six():
    interval = compute_period_and_grace("0 12 * * 0-6", datetime(2024, 5, 1))
    assert interval.period_seconds == 86400
