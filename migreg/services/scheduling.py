"""
Application services for discovering, reserving and cancelling slots.

The service regenerates slot templates from the working-hours policy on
every call, asks the storage protocols to merge in live reservations, and
applies the domain rules in memory before persisting the whole slot back.
It owns no state between calls.
"""

from __future__ import annotations

import logging
from datetime import date as _date
from datetime import datetime
from typing import Callable, List, Optional, Tuple

import pendulum
from pendulum import Date, DateTime

from ..domain.deadline import DeadlinePolicy
from ..domain.exceptions import (
    InvalidInterval,
    MaxCapacityExceeded,
    SlotAlreadyReserved,
    SlotNotFoundError,
    UserNotReserved,
)
from ..domain.models import ClosedRange, Service, Slot, User, to_date
from ..domain.slot_factory import SlotFactory
from ..domain.working_hours import WorkingHoursPolicy
from .dto import FreeSlot, ReservationRow, SlotView
from .providers import (
    AvailableSlotsProvider,
    HasAvailableSlotsProvider,
    ReservedSlotProvider,
    ReservedSlotsProvider,
    SlotsRepository,
    SlotStore,
    UserProvider,
)

logger = logging.getLogger(__name__)

MAX_DAYS_AHEAD = 30


class SchedulingService:
    """
    Orchestrates slot discovery, reservation and cancellation.

    Policies and the slot factory are immutable configuration built once at
    startup; storage is reached only through the provider protocols.
    """

    def __init__(
        self,
        *,
        slot_factory: SlotFactory,
        working_hours: WorkingHoursPolicy,
        deadline_policy: DeadlinePolicy,
        user_provider: UserProvider,
        available_slots_provider: AvailableSlotsProvider,
        has_available_slots_provider: HasAvailableSlotsProvider,
        reserved_slots_provider: ReservedSlotsProvider,
        reserved_slot_provider: ReservedSlotProvider,
        slots_repository: SlotsRepository,
        max_days_ahead: int = MAX_DAYS_AHEAD,
        today: Optional[Callable[[], Date]] = None,
    ) -> None:
        self._factory = slot_factory
        self._working_hours = working_hours
        self._deadline_policy = deadline_policy
        self._users = user_provider
        self._available = available_slots_provider
        self._has_available = has_available_slots_provider
        self._reserved = reserved_slots_provider
        self._reserved_one = reserved_slot_provider
        self._repository = slots_repository
        self._max_days_ahead = max_days_ahead
        self._today = today or self._local_today

    @classmethod
    def from_store(
        cls,
        store: SlotStore,
        *,
        slot_factory: SlotFactory,
        working_hours: WorkingHoursPolicy,
        deadline_policy: DeadlinePolicy,
        max_days_ahead: int = MAX_DAYS_AHEAD,
        today: Optional[Callable[[], Date]] = None,
    ) -> "SchedulingService":
        """Build the service around one adapter implementing every protocol."""
        return cls(
            slot_factory=slot_factory,
            working_hours=working_hours,
            deadline_policy=deadline_policy,
            user_provider=store,
            available_slots_provider=store,
            has_available_slots_provider=store,
            reserved_slots_provider=store,
            reserved_slot_provider=store,
            slots_repository=store,
            max_days_ahead=max_days_ahead,
            today=today,
        )

    @property
    def timezone(self) -> str:
        return self._working_hours.timezone

    def _local_today(self) -> Date:
        return pendulum.today(self.timezone).date()

    def _localize(self, time: datetime) -> DateTime:
        return pendulum.instance(time, tz=self.timezone).in_timezone(self.timezone)

    def templates(self, date: _date) -> List[Slot]:
        """Empty slots of ``date`` according to the working-hours policy."""
        return self._factory.create_all(to_date(date), self._working_hours)

    async def check_deadline(self, user_id: int, service: Service) -> bool:
        """
        Tell whether the user may still book ``service``.

        A user is eligible while today is on or before the cutoff date
        (arrival date plus the citizenship's deadline). Services without a
        deadline are always eligible.
        """
        if not service.has_deadline:
            return True
        user = await self._users.user(user_id)
        return self._today() <= self._deadline_policy.cutoff(user)

    def booking_window(
        self, user: User, service: Service, start_date: _date
    ) -> Tuple[Date, Date]:
        """
        Return the dates to scan as ``(start, end)``, end excluded.

        Deadline-bound services stop after the cutoff date; others look
        ``max_days_ahead`` days ahead.
        """
        start = to_date(start_date)
        if service.has_deadline:
            end = self._deadline_policy.cutoff(user).add(days=1)
        else:
            end = start.add(days=self._max_days_ahead)
        return start, end

    async def days_with_free_slots(
        self, user_id: int, start_date: _date, service: Service
    ) -> List[Date]:
        """Dates in the user's booking window with at least one free seat."""
        user = await self._users.user(user_id)
        start, end = self.booking_window(user, service, start_date)

        days: List[Date] = []
        for day in ClosedRange(start=start, end=end).days():
            templates = self.templates(day)
            if not templates:
                continue
            if await self._has_available.has_available_slots(templates):
                days.append(day)

        logger.debug(
            "User %s: %d day(s) with free slots between %s and %s",
            user_id, len(days), start, end,
        )
        return days

    async def free_slots(self, date: _date) -> List[FreeSlot]:
        """Slots of ``date`` that still have capacity, sorted by start."""
        templates = self.templates(date)
        if not templates:
            return []

        slots = await self._available.available_slots(templates)
        return [FreeSlot.from_slot(slot) for slot in sorted(slots, key=lambda s: s.start)]

    async def reserve_slot(
        self, user_id: int, time: datetime, service: Service
    ) -> FreeSlot:
        """
        Book a seat in the available slot starting exactly at ``time``.

        Raises:
            UserNotFound: If the user is not registered
            SlotNotFoundError: If no available slot starts at ``time``
            MaxCapacityExceeded: If the slot filled up meanwhile
            SlotAlreadyReserved: If the user already holds a seat there
            ConcurrentUpdateError: If another request changed the slot first
        """
        user = await self._users.user(user_id)
        time = self._localize(time)

        templates = self.templates(time.date())
        slots = await self._available.available_slots(templates) if templates else []
        slot = next((s for s in slots if s.start == time), None)
        if slot is None:
            logger.warning("User %s asked for %s but no available slot starts then", user_id, time)
            raise SlotNotFoundError(time)

        try:
            slot.reserve(user, service)
        except (MaxCapacityExceeded, SlotAlreadyReserved) as exc:
            logger.warning("Reservation of %s by user %s rejected: %s", time, user_id, exc)
            raise

        await self._repository.save_slot(slot)
        logger.info("User %s reserved %s for %s", user_id, slot.interval, service.value)
        return FreeSlot.from_slot(slot)

    async def cancel_reservation(self, user_id: int, time: datetime) -> None:
        """
        Release the user's seat in the slot starting at ``time``.

        Raises:
            UserNotFound: If the user is not registered
            UserNotReserved: If the user holds no seat in that slot
            ConcurrentUpdateError: If another request changed the slot first
        """
        await self._users.user(user_id)
        try:
            template = self._factory.create(self._localize(time))
        except InvalidInterval:
            # A slot there would cross midnight, so nobody can hold it.
            logger.warning("Cancellation of %s by user %s rejected: no such slot", time, user_id)
            raise UserNotReserved(user_id) from None
        slot = await self._reserved_one.reserved_slot(template)

        try:
            slot.cancel(user_id)
        except UserNotReserved as exc:
            logger.warning("Cancellation of %s by user %s rejected: %s", template.start, user_id, exc)
            raise

        await self._repository.save_slot(slot)
        logger.info("User %s cancelled %s", user_id, slot.interval)

    async def reservations(self, date: _date) -> List[ReservationRow]:
        """Every reservation of ``date``, one row per seat, in slot order."""
        templates = self.templates(date)
        if not templates:
            return []

        slots = await self._reserved.reserved_slots(templates)
        rows: List[ReservationRow] = []
        for slot in sorted(slots, key=lambda s: s.start):
            for reservation in slot.reservations:
                rows.append(ReservationRow.from_reservation(slot, reservation))
        return rows

    async def slots(self, date: _date) -> List[SlotView]:
        """Every working slot of ``date`` with its current occupancy."""
        templates = self.templates(date)
        if not templates:
            return []

        reserved = {
            slot.start: slot for slot in await self._reserved.reserved_slots(templates)
        }
        return [SlotView.from_slot(reserved.get(t.start, t)) for t in templates]

    async def user_reservations(
        self, user_id: int, start_date: _date, days: int = MAX_DAYS_AHEAD
    ) -> List[ReservationRow]:
        """The user's own reservations within ``days`` days from ``start_date``."""
        start = to_date(start_date)
        rows: List[ReservationRow] = []
        for day in ClosedRange(start=start, end=start.add(days=days)).days():
            templates = self.templates(day)
            if not templates:
                continue
            for slot in sorted(await self._reserved.reserved_slots(templates), key=lambda s: s.start):
                rows.extend(
                    ReservationRow.from_reservation(slot, r)
                    for r in slot.reservations
                    if r.user.id == user_id
                )
        return rows
