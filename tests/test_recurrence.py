"""Tests for recurrence expansion."""

from datetime import date, time

import pytest

from quiro_agenda.core.exceptions import InvalidDateTimeException, InvalidRequestException
from quiro_agenda.schemas.appointments import RecurrenceType
from quiro_agenda.services.recurrence import RecurrenceRule, expand, sunday_based_weekday

NINE = time(9, 0)


def days(occurrences: list[tuple[date, time]]) -> list[date]:
    return [day for day, _ in occurrences]


def test_sunday_based_weekday() -> None:
    assert sunday_based_weekday(date(2025, 3, 9)) == 0  # Sunday
    assert sunday_based_weekday(date(2025, 3, 10)) == 1  # Monday
    assert sunday_based_weekday(date(2025, 3, 15)) == 6  # Saturday


def test_daily_only_counts_selected_weekdays() -> None:
    """Mon/Wed/Fri starting on a Sunday skips the start day itself."""
    rule = RecurrenceRule(
        recurrence_type=RecurrenceType.DAILY,
        occurrences=5,
        selected_weekdays=frozenset({1, 3, 5}),
    )
    result = expand(date(2025, 3, 9), NINE, rule)

    assert days(result) == [
        date(2025, 3, 10),
        date(2025, 3, 12),
        date(2025, 3, 14),
        date(2025, 3, 17),
        date(2025, 3, 19),
    ]
    assert all(clock_time == NINE for _, clock_time in result)


def test_daily_requires_weekdays() -> None:
    rule = RecurrenceRule(recurrence_type=RecurrenceType.DAILY, occurrences=3)
    with pytest.raises(InvalidRequestException):
        expand(date(2025, 3, 9), NINE, rule)


def test_weekly_count_takes_precedence_over_occurrences() -> None:
    rule = RecurrenceRule(recurrence_type=RecurrenceType.WEEKLY, occurrences=10, weekly_count=4)
    result = expand(date(2025, 3, 10), NINE, rule)

    assert days(result) == [date(2025, 3, 10), date(2025, 3, 17), date(2025, 3, 24), date(2025, 3, 31)]
    assert {day.weekday() for day in days(result)} == {0}


def test_weekly_falls_back_to_occurrences() -> None:
    rule = RecurrenceRule(recurrence_type=RecurrenceType.WEEKLY, occurrences=3)
    assert len(expand(date(2025, 3, 10), NINE, rule)) == 3


def test_monthly_clamps_to_month_end_without_drifting() -> None:
    rule = RecurrenceRule(recurrence_type=RecurrenceType.MONTHLY, occurrences=4, recurrence_interval=1)
    assert days(expand(date(2025, 1, 31), NINE, rule)) == [
        date(2025, 1, 31),
        date(2025, 2, 28),
        date(2025, 3, 31),
        date(2025, 4, 30),
    ]


def test_monthly_leap_year() -> None:
    rule = RecurrenceRule(recurrence_type=RecurrenceType.MONTHLY, occurrences=2, recurrence_interval=1)
    assert days(expand(date(2024, 1, 31), NINE, rule)) == [date(2024, 1, 31), date(2024, 2, 29)]


def test_monthly_interval() -> None:
    rule = RecurrenceRule(recurrence_type=RecurrenceType.MONTHLY, occurrences=3, recurrence_interval=6)
    assert days(expand(date(2025, 8, 31), NINE, rule)) == [
        date(2025, 8, 31),
        date(2026, 2, 28),
        date(2026, 8, 31),
    ]


@pytest.mark.parametrize("interval", [None, 0, 4, 24])
def test_monthly_rejects_unsupported_interval(interval: int | None) -> None:
    rule = RecurrenceRule(
        recurrence_type=RecurrenceType.MONTHLY,
        occurrences=2,
        recurrence_interval=interval,
    )
    with pytest.raises(InvalidRequestException):
        expand(date(2025, 1, 1), NINE, rule)


def test_occurrence_bounds() -> None:
    too_many = RecurrenceRule(recurrence_type=RecurrenceType.WEEKLY, occurrences=51)
    with pytest.raises(InvalidRequestException):
        expand(date(2025, 1, 1), NINE, too_many, max_occurrences=50)

    weekly_too_many = RecurrenceRule(recurrence_type=RecurrenceType.WEEKLY, occurrences=2, weekly_count=60)
    with pytest.raises(InvalidRequestException):
        expand(date(2025, 1, 1), NINE, weekly_too_many, max_occurrences=50)

    zero = RecurrenceRule(recurrence_type=RecurrenceType.WEEKLY, occurrences=0)
    with pytest.raises(InvalidRequestException):
        expand(date(2025, 1, 1), NINE, zero)


@pytest.mark.parametrize(
    "rule",
    [
        RecurrenceRule(recurrence_type=RecurrenceType.WEEKLY, occurrences=2),
        RecurrenceRule(recurrence_type=RecurrenceType.MONTHLY, occurrences=2, recurrence_interval=1),
    ],
)
def test_expansion_past_year_9999_is_invalid(rule: RecurrenceRule) -> None:
    with pytest.raises(InvalidDateTimeException):
        expand(date(9999, 12, 28), NINE, rule)
