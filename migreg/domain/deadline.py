"""
Deadline policies: how long after arrival a foreign national may book.
"""

from abc import ABC, abstractmethod

from pendulum import Date

from .exceptions import InvalidValue
from .models import Citizenship, Country, User, to_date


class DeadlinePolicy(ABC):
    """Maps a citizenship to the number of days allowed after arrival."""

    @abstractmethod
    def deadline(self, citizenship: Citizenship) -> int:
        """Return the booking window in days."""

    def cutoff(self, user: User) -> Date:
        """Last date on which a deadline-bound service may still be booked."""
        return to_date(user.arrival_date).add(days=self.deadline(user.citizenship))


class StandardDeadlinePolicy(DeadlinePolicy):
    """
    The office's standard table:

    - 15 days for Tajikistan and Uzbekistan;
    - 30 days for Kazakhstan, Kyrgyzstan and Armenia;
    - 90 days for Belarus and Ukraine;
    - 7 days for every other citizenship.
    """

    TABLE = {
        Country.TAJIKISTAN: 15,
        Country.UZBEKISTAN: 15,
        Country.KAZAKHSTAN: 30,
        Country.KYRGYZSTAN: 30,
        Country.ARMENIA: 30,
        Country.BELARUS: 90,
        Country.UKRAINE: 90,
    }
    OTHER = 7

    def deadline(self, citizenship: Citizenship) -> int:
        if citizenship.country is None:
            return self.OTHER
        return self.TABLE.get(citizenship.country, self.OTHER)


class FixedDeadlinePolicy(DeadlinePolicy):
    """Same window for every citizenship."""

    def __init__(self, days: int):
        if days < 0:
            raise InvalidValue(f"days must not be negative, got {days}")
        self.days = days

    def deadline(self, citizenship: Citizenship) -> int:
        return self.days
