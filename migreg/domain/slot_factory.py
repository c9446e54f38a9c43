"""
Slot templates: turning a working day into empty, capacity-bounded slots.
"""

from abc import ABC, abstractmethod
from typing import List

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidInterval, InvalidValue
from .models import Slot, TimeInterval, to_date
from .working_hours import WorkingHoursPolicy


class SlotFactory(ABC):
    """Knows the size and the duration of the slots it creates."""

    @abstractmethod
    def create(self, start: DateTime) -> Slot:
        """Create one empty slot starting at ``start``."""

    @abstractmethod
    def create_all(self, date: Date, policy: WorkingHoursPolicy) -> List[Slot]:
        """Create every empty working slot of ``date`` in chronological order."""


class FixedSlotFactory(SlotFactory):
    """
    Creates slots of one fixed capacity and duration.

    Days are tiled from midnight in ``duration_minutes`` steps; a candidate
    that would run past midnight is dropped.
    """

    def __init__(self, max_size: int, duration_minutes: int, timezone: str = "UTC"):
        if max_size <= 0:
            raise InvalidValue(f"max_size must be greater than zero, got {max_size}")
        if duration_minutes <= 0:
            raise InvalidValue(
                f"duration_minutes must be greater than zero, got {duration_minutes}"
            )
        self.max_size = max_size
        self.duration_minutes = duration_minutes
        self.timezone = timezone

    def create(self, start: DateTime) -> Slot:
        start = pendulum.instance(start, tz=self.timezone).in_timezone(self.timezone)
        interval = TimeInterval.with_duration(start, self.duration_minutes)
        return Slot(interval=interval, max_size=self.max_size)

    def create_all(self, date: Date, policy: WorkingHoursPolicy) -> List[Slot]:
        date = to_date(date)
        slots: List[Slot] = []

        current = pendulum.datetime(date.year, date.month, date.day, tz=self.timezone)
        while current.date() == date:
            try:
                slot = self.create(current)
            except InvalidInterval:
                # Runs past midnight; every later candidate would too.
                break
            if policy.is_working(slot.interval):
                slots.append(slot)
            current = current.add(minutes=self.duration_minutes)

        return slots
