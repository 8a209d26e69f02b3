"""Clock and zone conversion for the scheduling core.

The clinic talks in local wall-clock values (``YYYY-MM-DD`` plus ``HH:MM``)
in a fixed UTC offset with no daylight saving. Storage and comparisons use
UTC instants. All conversions between the two go through ``SchedulingClock``;
the host time zone is never consulted.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta, timezone

from quiro_agenda.core.exceptions import InvalidDateTimeException, InvalidRequestException


def _system_now() -> datetime:
    return datetime.now(UTC)


def parse_local_date(value: date | str) -> date:
    """
    Parse a local calendar date.

    Args:
        value: ``date`` instance or ``YYYY-MM-DD`` string

    Returns:
        Parsed date

    Raises:
        InvalidDateTimeException: If the value is not a valid date
    """
    if isinstance(value, datetime):
        raise InvalidDateTimeException(f"Expected a date, got a datetime: {value!r}")
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) != 10:
        raise InvalidDateTimeException(f"Invalid date: {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateTimeException(f"Invalid date: {value!r}") from e


def parse_local_time(value: time | str) -> time:
    """
    Parse a local wall-clock time.

    Args:
        value: ``time`` instance or ``HH:MM`` / ``HH:MM:SS`` string

    Returns:
        Parsed naive time

    Raises:
        InvalidDateTimeException: If the value is not a valid time of day
    """
    if isinstance(value, time):
        if value.tzinfo is not None:
            raise InvalidDateTimeException("Local time must not carry a time zone")
        return value
    if not isinstance(value, str) or len(value) not in (5, 8):
        raise InvalidDateTimeException(f"Invalid time: {value!r}")
    try:
        parsed = time.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateTimeException(f"Invalid time: {value!r}") from e
    if parsed.tzinfo is not None:
        raise InvalidDateTimeException(f"Invalid time: {value!r}")
    return parsed


class SchedulingClock:
    """Canonical source of "now" and of local/UTC conversions."""

    def __init__(
        self,
        offset_minutes: int = -180,
        now: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the clock.

        Args:
            offset_minutes: Fixed offset of local wall-clock time from UTC
            now: Time source returning an aware datetime; defaults to system UTC
        """
        self.offset = timedelta(minutes=offset_minutes)
        self.zone = timezone(self.offset)
        self._now = now or _system_now

    def now(self) -> datetime:
        """Return the current instant in UTC."""
        current = self._now()
        if current.tzinfo is None:
            raise InvalidDateTimeException("Clock source returned a naive datetime")
        return current.astimezone(UTC)

    def to_utc(self, local_date: date | str, local_time: time | str) -> datetime:
        """
        Interpret a local date/time pair and return the UTC instant.

        Args:
            local_date: Local calendar date
            local_time: Local wall-clock time

        Returns:
            Aware datetime in UTC
        """
        day = parse_local_date(local_date)
        clock_time = parse_local_time(local_time)
        try:
            return datetime.combine(day, clock_time, tzinfo=self.zone).astimezone(UTC)
        except OverflowError as e:
            raise InvalidDateTimeException(f"Date out of range: {day.isoformat()} {clock_time}") from e

    def to_local(self, instant: datetime) -> tuple[date, time]:
        """
        Convert an instant into the local date/time pair.

        Args:
            instant: Aware datetime

        Returns:
            Tuple of local date and naive local time
        """
        if instant.tzinfo is None:
            raise InvalidDateTimeException("Instants must be timezone-aware")
        local = instant.astimezone(self.zone)
        return local.date(), local.time().replace(tzinfo=None)

    def today_local(self) -> date:
        """Return the local calendar date of ``now()``."""
        return self.to_local(self.now())[0]

    def local_day_window(self, from_date: date | str, to_date: date | str) -> tuple[datetime, datetime]:
        """
        Convert an inclusive local date range to a half-open UTC window.

        Args:
            from_date: First local day
            to_date: Last local day (inclusive)

        Returns:
            ``(start, end)`` where ``end`` is local midnight after ``to_date``
        """
        first = parse_local_date(from_date)
        last = parse_local_date(to_date)
        if last < first:
            raise InvalidRequestException("to_date must not be before from_date")
        try:
            day_after = last + timedelta(days=1)
        except OverflowError as e:
            raise InvalidDateTimeException(f"Date out of range: {last.isoformat()}") from e
        return self.to_utc(first, time(0, 0)), self.to_utc(day_after, time(0, 0))

    def format_local(self, instant: datetime) -> tuple[str, str]:
        """Return ``("YYYY-MM-DD", "HH:MM")`` for an instant."""
        day, clock_time = self.to_local(instant)
        return day.isoformat(), clock_time.strftime("%H:%M")
