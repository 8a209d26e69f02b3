"""Recurrence expansion.

Pure calendar arithmetic: a start date/time and a rule go in, the ordered list
of local ``(date, time)`` occurrences comes out. Storage and time zones are
handled by the caller.
"""

from dataclasses import dataclass, field
from datetime import date, time, timedelta

from dateutil.relativedelta import relativedelta

from quiro_agenda.core.exceptions import InvalidDateTimeException, InvalidRequestException
from quiro_agenda.schemas.appointments import RecurrenceType

ALLOWED_MONTH_INTERVALS = frozenset({1, 2, 3, 6, 12})


@dataclass(frozen=True)
class RecurrenceRule:
    """Validated recurrence parameters."""

    recurrence_type: RecurrenceType
    occurrences: int
    weekly_count: int | None = None
    selected_weekdays: frozenset[int] = field(default_factory=frozenset)
    recurrence_interval: int | None = None


def sunday_based_weekday(day: date) -> int:
    """Return the weekday with Sunday = 0 ... Saturday = 6."""
    return (day.weekday() + 1) % 7


def validate_rule(rule: RecurrenceRule, max_occurrences: int) -> None:
    """
    Reject impossible recurrence combinations.

    Raises:
        InvalidRequestException: If the rule cannot be expanded
    """
    if not 1 <= rule.occurrences <= max_occurrences:
        raise InvalidRequestException(f"occurrences must be between 1 and {max_occurrences}")

    if rule.recurrence_type is RecurrenceType.DAILY:
        if not rule.selected_weekdays:
            raise InvalidRequestException("Daily recurrence requires at least one weekday")
        if any(not 0 <= day <= 6 for day in rule.selected_weekdays):
            raise InvalidRequestException("Weekdays must be between 0 (Sunday) and 6 (Saturday)")

    elif rule.recurrence_type is RecurrenceType.WEEKLY:
        if rule.weekly_count is not None and not 1 <= rule.weekly_count <= max_occurrences:
            raise InvalidRequestException(f"weekly_count must be between 1 and {max_occurrences}")

    elif rule.recurrence_type is RecurrenceType.MONTHLY:
        if rule.recurrence_interval not in ALLOWED_MONTH_INTERVALS:
            raise InvalidRequestException(
                "Monthly recurrence requires recurrence_interval in "
                f"{sorted(ALLOWED_MONTH_INTERVALS)}"
            )


def _expand_daily(start: date, rule: RecurrenceRule) -> list[date]:
    days: list[date] = []
    current = start
    # Only emitted days count towards occurrences
    while len(days) < rule.occurrences:
        if sunday_based_weekday(current) in rule.selected_weekdays:
            days.append(current)
        current += timedelta(days=1)
    return days


def _expand_weekly(start: date, rule: RecurrenceRule) -> list[date]:
    count = rule.weekly_count if rule.weekly_count is not None else rule.occurrences
    return [start + timedelta(weeks=k) for k in range(count)]


def _expand_monthly(start: date, rule: RecurrenceRule) -> list[date]:
    interval = rule.recurrence_interval or 1
    # Offsets are taken from the start date so a clamped month does not drift
    # later occurrences (Jan 31 -> Feb 28 -> Mar 31).
    return [start + relativedelta(months=k * interval) for k in range(rule.occurrences)]


def expand(
    start_date: date,
    start_time: time,
    rule: RecurrenceRule,
    max_occurrences: int = 50,
) -> list[tuple[date, time]]:
    """
    Expand a recurrence rule into ordered local occurrences.

    Args:
        start_date: First candidate local date
        start_time: Local wall-clock time shared by every occurrence
        rule: Recurrence parameters
        max_occurrences: Upper bound on occurrences and weekly_count

    Returns:
        Ordered list of ``(local_date, local_time)`` pairs

    Raises:
        InvalidRequestException: If the rule is invalid
        InvalidDateTimeException: If an occurrence falls past year 9999
    """
    validate_rule(rule, max_occurrences)

    try:
        if rule.recurrence_type is RecurrenceType.DAILY:
            days = _expand_daily(start_date, rule)
        elif rule.recurrence_type is RecurrenceType.WEEKLY:
            days = _expand_weekly(start_date, rule)
        else:
            days = _expand_monthly(start_date, rule)
    except (OverflowError, ValueError) as e:
        raise InvalidDateTimeException("Recurrence runs past the last supported date") from e

    return [(day, start_time) for day in days]
