"""
Business Calendar
=================

Working-time arithmetic over a configured business calendar.

All public methods accept timezone-aware datetimes (naive values are read
as UTC) and do their local-time reasoning in the calendar's timezone.
Internally everything is computed on exact ``timedelta`` values; the
hour-based methods are rounding wrappers around them.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from helpdesk.sla.domain.value_objects import BusinessHoursConfig


ZERO = timedelta(0)


def ensure_aware(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def to_hours(delta: timedelta) -> float:
    """Convert a timedelta to fractional hours."""
    return delta.total_seconds() / 3600


class BusinessCalendar:
    """
    Business hours calendar.

    Example:
        calendar = BusinessCalendar(BusinessHoursConfig(timezone="UTC"))
        calendar.add_working_hours(datetime(2024, 1, 8, 9, 30, tzinfo=timezone.utc), 8)
        # -> 2024-01-08 17:30 UTC
    """

    def __init__(self, config: Optional[BusinessHoursConfig] = None):
        self.config = config or BusinessHoursConfig()
        self.tz = ZoneInfo(self.config.timezone)
        self._working_days = frozenset(self.config.working_days)
        self._holidays = frozenset(self.config.holidays)
        self._start = timedelta(hours=self.config.start_hour)
        self._end = timedelta(hours=self.config.end_hour)

    # ========== Predicates ==========

    def is_working_day(self, instant: datetime) -> bool:
        """Check if the local date of ``instant`` is a working, non-holiday day."""
        return self._is_working_date(self._local(instant).date())

    def is_working_hours(self, instant: datetime) -> bool:
        """Check if the local hour of ``instant`` falls inside the daily window."""
        local = self._local(instant)
        return self.config.start_hour <= local.hour < self.config.end_hour

    # ========== Navigation ==========

    def next_working_instant(self, instant: datetime) -> datetime:
        """
        Earliest working instant at or after ``instant``.

        Args:
            instant: Point in time to start from

        Returns:
            ``instant`` itself (in the calendar timezone) if it is inside a
            working window, otherwise the start of the next working window
        """
        local = self._local(instant)
        window_start, window_end = self._window(local.date())

        if self._is_working_date(local.date()) and window_start <= local < window_end:
            return local

        if local >= window_end:
            candidate = self._window(local.date() + timedelta(days=1))[0]
        elif local < window_start:
            candidate = window_start
        else:
            candidate = local

        while not self._is_working_date(candidate.date()):
            candidate = self._window(candidate.date() + timedelta(days=1))[0]
        return candidate

    # ========== Working time ==========

    def working_time_between(self, start: datetime, end: datetime) -> timedelta:
        """Exact working time in ``[start, end)``; zero when ``end <= start``."""
        start_local = self._local(start)
        end_local = self._local(end)
        if end_local <= start_local:
            return ZERO

        total = ZERO
        day = start_local.date()
        while day <= end_local.date():
            if self._is_working_date(day):
                window_start, window_end = self._window(day)
                low = max(start_local, window_start)
                high = min(end_local, window_end)
                if high > low:
                    total += high - low
            day += timedelta(days=1)
        return total

    def add_working_time(self, start: datetime, amount: timedelta) -> datetime:
        """
        Move forward from ``start`` by ``amount`` of working time.

        Args:
            start: Point in time to start from
            amount: Non-negative working time to consume

        Returns:
            The instant at which ``amount`` of working time has elapsed
        """
        if amount < ZERO:
            raise ValueError("Cannot add a negative amount of working time")

        current = self.next_working_instant(start)
        remaining = amount
        while remaining > ZERO:
            window_end = self._window(current.date())[1]
            left_today = window_end - current
            if remaining <= left_today:
                return current + remaining
            remaining -= left_today
            current = self.next_working_instant(window_end)
        return current

    def working_hours_between(self, start: datetime, end: datetime) -> float:
        """Working hours between two instants, rounded to 2 decimals."""
        return round(to_hours(self.working_time_between(start, end)), 2)

    def add_working_hours(self, start: datetime, hours: float) -> datetime:
        """Add ``hours`` of working time to ``start``."""
        return self.add_working_time(start, timedelta(hours=hours))

    # ========== Helpers ==========

    def _local(self, instant: datetime) -> datetime:
        return ensure_aware(instant).astimezone(self.tz)

    def _is_working_date(self, day: date) -> bool:
        if day.isoweekday() not in self._working_days:
            return False
        return day.strftime("%m-%d") not in self._holidays

    def _window(self, day: date) -> Tuple[datetime, datetime]:
        midnight = datetime.combine(day, time(0), tzinfo=self.tz)
        return midnight + self._start, midnight + self._end
