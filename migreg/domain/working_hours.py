"""
Working-hours policies: which parts of a calendar day can be booked.
"""

from abc import ABC, abstractmethod
from datetime import time

import pendulum
from pendulum import Date

from .exceptions import InvalidInterval
from .models import ClosedRange, TimeInterval, to_date

# pendulum.MONDAY == 0 ... pendulum.SUNDAY == 6
FRIDAY = 4
WEEKEND = (5, 6)


class WorkingHoursPolicy(ABC):
    """
    Maps a calendar date to its working bounds.

    Subclasses decide the bounds; ``is_working`` may additionally exclude
    breaks inside them.
    """

    def __init__(self, timezone: str = "UTC"):
        self.timezone = timezone

    @abstractmethod
    def bounds(self, date: Date) -> TimeInterval | None:
        """Return the working interval of ``date``, or None on days off."""

    def is_working(self, interval: TimeInterval) -> bool:
        """Check that ``interval`` lies fully inside the day's working bounds."""
        bounds = self.bounds(interval.date)
        if bounds is None:
            return False
        return bounds.contains(interval)

    def _at(self, date: Date, moment: time) -> pendulum.DateTime:
        return pendulum.datetime(
            date.year,
            date.month,
            date.day,
            moment.hour,
            moment.minute,
            moment.second,
            moment.microsecond,
            tz=self.timezone,
        )

    def _interval(self, date: Date, window: ClosedRange) -> TimeInterval:
        return TimeInterval(start=self._at(date, window.start), end=self._at(date, window.end))


class WeekdayWorkingHoursPolicy(WorkingHoursPolicy):
    """Monday to Friday, the whole day, no breaks."""

    _WHOLE_DAY = ClosedRange(start=time(0, 0), end=time(23, 59, 59, 999999))

    def bounds(self, date: Date) -> TimeInterval | None:
        date = to_date(date)
        if date.day_of_week in WEEKEND:
            return None
        return self._interval(date, self._WHOLE_DAY)


class SplitWorkingHoursPolicy(WorkingHoursPolicy):
    """
    Standard five-day week with shorter Fridays and a fixed lunch break.

    Monday to Thursday use ``weekday_hours``, Friday uses ``friday_hours``,
    and ``lunch`` is excluded on every working day. Holidays are not
    considered.
    """

    def __init__(
        self,
        weekday_hours: ClosedRange[time],
        friday_hours: ClosedRange[time],
        lunch: ClosedRange[time],
        timezone: str = "UTC",
    ):
        super().__init__(timezone=timezone)
        for name, window in (
            ("weekday_hours", weekday_hours),
            ("friday_hours", friday_hours),
            ("lunch", lunch),
        ):
            if window.start >= window.end:
                raise InvalidInterval(
                    f"{name}: expected start < end, got {window.start} -- {window.end}"
                )
        self.weekday_hours = weekday_hours
        self.friday_hours = friday_hours
        self.lunch = lunch

    def bounds(self, date: Date) -> TimeInterval | None:
        date = to_date(date)
        weekday = date.day_of_week
        if weekday in WEEKEND:
            return None
        if weekday == FRIDAY:
            return self._interval(date, self.friday_hours)
        return self._interval(date, self.weekday_hours)

    def lunch_break(self, date: Date) -> TimeInterval:
        return self._interval(to_date(date), self.lunch)

    def is_working(self, interval: TimeInterval) -> bool:
        if not super().is_working(interval):
            return False
        return not self.lunch_break(interval.date).overlaps(interval)
