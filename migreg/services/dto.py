"""
Plain data handed to callers (chat handlers, CLI, exports).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from pendulum import Date, DateTime

from ..domain.models import Reservation, Service, Slot, User


@dataclass(frozen=True)
class FreeSlot:
    """Start and end of a slot that can still be booked."""
    start: DateTime
    end: DateTime

    @classmethod
    def from_slot(cls, slot: Slot) -> "FreeSlot":
        return cls(start=slot.start, end=slot.end)


@dataclass(frozen=True)
class UserDTO:
    id: int
    username: str
    full_name_lat: str
    full_name_cyr: str
    citizenship: str
    arrival_date: Date

    @classmethod
    def from_user(cls, user: User) -> "UserDTO":
        return cls(
            id=user.id,
            username=user.username,
            full_name_lat=str(user.full_name_lat),
            full_name_cyr=str(user.full_name_cyr),
            citizenship=user.citizenship.label,
            arrival_date=user.arrival_date,
        )


@dataclass(frozen=True)
class ReservationRow:
    """One reservation flattened together with its slot, for reports."""
    slot_start: DateTime
    slot_end: DateTime
    service: Service
    user_id: int
    username: str
    full_name_lat: str
    full_name_cyr: str
    citizenship: str
    arrival_date: Date

    @classmethod
    def from_reservation(cls, slot: Slot, reservation: Reservation) -> "ReservationRow":
        user = reservation.user
        return cls(
            slot_start=slot.start,
            slot_end=slot.end,
            service=reservation.service,
            user_id=user.id,
            username=user.username,
            full_name_lat=str(user.full_name_lat),
            full_name_cyr=str(user.full_name_cyr),
            citizenship=user.citizenship.label,
            arrival_date=user.arrival_date,
        )


@dataclass(frozen=True)
class SlotView:
    """A slot with its current occupancy, for the admin view."""
    start: DateTime
    end: DateTime
    max_size: int
    reservations: List[ReservationRow] = field(default_factory=list)

    @property
    def free_seats(self) -> int:
        # Negative when capacity was lowered after booking.
        return max(self.max_size - len(self.reservations), 0)

    @classmethod
    def from_slot(cls, slot: Slot) -> "SlotView":
        return cls(
            start=slot.start,
            end=slot.end,
            max_size=slot.max_size,
            reservations=[ReservationRow.from_reservation(slot, r) for r in slot.reservations],
        )
