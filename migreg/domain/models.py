"""
Domain models for slots, reservations and the people who book them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date as _date
from enum import Enum
from typing import Generic, Iterator, List, Optional, TypeVar

import pendulum
from pendulum import Date, DateTime

from .exceptions import (
    InvalidInterval,
    InvalidValue,
    MaxCapacityExceeded,
    SlotAlreadyReserved,
    UserNotReserved,
)

T = TypeVar("T")


def to_date(value: _date) -> Date:
    """Convert any ``datetime.date`` (or datetime) into a pendulum Date."""
    return pendulum.date(value.year, value.month, value.day)


@dataclass(frozen=True)
class ClosedRange(Generic[T]):
    """
    Ordered pair of comparable values.

    ``start <= end`` is expected from callers; the range does not check it.
    """
    start: T
    end: T

    def contains(self, other: "ClosedRange[T]") -> bool:
        """Check if this range fully encloses another."""
        return self.start <= other.start and self.end >= other.end

    def overlaps(self, other: "ClosedRange[T]") -> bool:
        """Check if the open interiors of both ranges intersect."""
        return self.start < other.end and self.end > other.start

    def is_disjoint(self, other: "ClosedRange[T]") -> bool:
        return not self.overlaps(other)

    def days(self) -> Iterator[Date]:
        """
        Iterate the dates of a date range, end excluded.

        Only meaningful when ``start`` and ``end`` are dates.
        """
        current = to_date(self.start)
        end = to_date(self.end)
        while current < end:
            yield current
            current = current.add(days=1)


@dataclass(frozen=True)
class TimeInterval(ClosedRange[DateTime]):
    """
    A non-empty interval of instants within a single calendar day.

    Invariant: start < end and both fall on the same date.
    """

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInterval(
                f"expected start < end, got {self.start} -- {self.end}"
            )
        if self.start.date() != self.end.date():
            raise InvalidInterval(
                f"expected interval within one day, got {self.start} -- {self.end}"
            )

    @classmethod
    def with_duration(cls, start: DateTime, minutes: int) -> "TimeInterval":
        """Build an interval of ``minutes`` length starting at ``start``."""
        return cls(start=start, end=start.add(minutes=minutes))

    @property
    def date(self) -> Date:
        return to_date(self.start)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


class Service(str, Enum):
    """Appointment categories offered by the office."""
    INITIAL_REGISTRATION = "initial_registration"
    VISA = "visa"
    INSURANCE = "insurance"
    VISA_AND_INSURANCE = "visa_and_insurance"
    RENEWAL_OF_REGISTRATION = "renewal_of_registration"
    RENEWAL_OF_VISA = "renewal_of_visa"
    ALL = "all"

    @property
    def has_deadline(self) -> bool:
        """Renewals are not bound to the arrival date."""
        return self not in (Service.RENEWAL_OF_REGISTRATION, Service.RENEWAL_OF_VISA)

    @property
    def label(self) -> str:
        return _SERVICE_LABELS[self]

    @classmethod
    def parse(cls, value: str) -> "Service":
        """
        Resolve a service from its code or its display label.

        Raises:
            InvalidValue: If the value names no known service
        """
        text = value.strip()
        for service in cls:
            if text == service.value or text == service.label:
                return service
        choices = ", ".join(service.value for service in cls)
        raise InvalidValue(f"invalid service: expected one of [{choices}], got {value!r}")


_SERVICE_LABELS = {
    Service.INITIAL_REGISTRATION: "Первичная регистрация",
    Service.VISA: "Получение визы",
    Service.INSURANCE: "Страховка",
    Service.VISA_AND_INSURANCE: "Виза и страховка",
    Service.RENEWAL_OF_REGISTRATION: "Продление регистрации",
    Service.RENEWAL_OF_VISA: "Продление визы",
    Service.ALL: "Все услуги",
}


class Country(str, Enum):
    """Countries with a dedicated deadline rule; values are display labels."""
    TAJIKISTAN = "Таджикистан"
    UZBEKISTAN = "Узбекистан"
    KAZAKHSTAN = "Казахстан"
    KYRGYZSTAN = "Кыргызстан"
    ARMENIA = "Армения"
    BELARUS = "Беларусь"
    UKRAINE = "Украина"


@dataclass(frozen=True)
class Citizenship:
    """
    A known country, or free text for every other citizenship.

    Exactly one of ``country`` and ``other_name`` is meaningful.
    """
    country: Optional[Country] = None
    other_name: str = ""

    @classmethod
    def of(cls, country: Country) -> "Citizenship":
        return cls(country=country)

    @classmethod
    def other(cls, name: str) -> "Citizenship":
        return cls(other_name=name.strip())

    @classmethod
    def parse(cls, label: str) -> "Citizenship":
        """Map a stored label back; unknown labels become "other"."""
        text = label.strip()
        for country in Country:
            if country.value == text:
                return cls.of(country)
        return cls.other(text)

    @property
    def is_other(self) -> bool:
        return self.country is None

    @property
    def label(self) -> str:
        return self.country.value if self.country is not None else self.other_name

    def __str__(self) -> str:
        return self.label


_LATIN_RE = re.compile(r"^[A-Za-z -]+$")
_CYRILLIC_RE = re.compile(r"^[А-Яа-яЁё -]+$")


class LatinName(str):
    """Full name written in Latin letters, spaces and hyphens only."""

    def __new__(cls, value: str):
        if not _LATIN_RE.match(value):
            raise InvalidValue(f"expected Latin letters only, got {value!r}")
        return super().__new__(cls, value)


class CyrillicName(str):
    """Full name written in Cyrillic letters, spaces and hyphens only."""

    def __new__(cls, value: str):
        if not _CYRILLIC_RE.match(value):
            raise InvalidValue(f"expected Cyrillic letters only, got {value!r}")
        return super().__new__(cls, value)


@dataclass(frozen=True)
class User:
    """A registered foreign national."""
    id: int
    username: str
    full_name_lat: LatinName
    full_name_cyr: CyrillicName
    citizenship: Citizenship
    arrival_date: Date


@dataclass(frozen=True)
class Reservation:
    """One seat in a slot: who booked it and for which service."""
    user: User
    service: Service


@dataclass
class Slot:
    """
    A bookable appointment window with a fixed number of seats.

    Invariants: ``reserve`` never grows ``reservations`` past ``max_size``
    and no user holds more than one reservation. A restored slot may hold
    more than ``max_size`` when capacity was lowered after booking; it is
    then simply unavailable. ``revision`` is the storage revision the slot
    was read at (0 for a slot that has never been stored).
    """
    interval: TimeInterval
    max_size: int
    reservations: List[Reservation] = field(default_factory=list)
    revision: int = 0

    @classmethod
    def restore(
        cls,
        interval: TimeInterval,
        max_size: int,
        reservations: List[Reservation],
        revision: int = 0,
    ) -> "Slot":
        """
        Rebuild a persisted slot.

        Stored reservations are kept even when they outnumber ``max_size``;
        such a slot reports no free seats and refuses new bookings.
        """
        return cls(
            interval=interval,
            max_size=max_size,
            reservations=list(reservations),
            revision=revision,
        )

    @property
    def start(self) -> DateTime:
        return self.interval.start

    @property
    def end(self) -> DateTime:
        return self.interval.end

    @property
    def reserved(self) -> int:
        return len(self.reservations)

    def holds(self, user_id: int) -> bool:
        return any(r.user.id == user_id for r in self.reservations)

    def is_available(self) -> bool:
        return len(self.reservations) < self.max_size

    def is_empty(self) -> bool:
        return not self.reservations

    def reserve(self, user: User, service: Service) -> Reservation:
        """
        Take a seat for ``user``.

        Raises:
            MaxCapacityExceeded: If every seat is taken
            SlotAlreadyReserved: If the user already holds a seat here
        """
        if len(self.reservations) >= self.max_size:
            raise MaxCapacityExceeded(self.max_size)
        if self.holds(user.id):
            raise SlotAlreadyReserved(user.id)
        reservation = Reservation(user=user, service=service)
        self.reservations.append(reservation)
        return reservation

    def cancel(self, user_id: int) -> Reservation:
        """
        Release the seat held by ``user_id``.

        Raises:
            UserNotReserved: If the user holds no seat here
        """
        for index, reservation in enumerate(self.reservations):
            if reservation.user.id == user_id:
                return self.reservations.pop(index)
        raise UserNotReserved(user_id)
