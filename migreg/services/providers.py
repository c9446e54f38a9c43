"""
Protocols describing the storage behaviour the services depend on.

Each protocol is a single capability so a use case only asks for what it
needs; the SQL and in-memory adapters implement all of them.
"""

from __future__ import annotations

from typing import List, Protocol, Sequence

from ..domain.models import Slot, User


class UserProvider(Protocol):
    """Looks up registered users."""

    async def user(self, user_id: int) -> User:
        """Return the user or raise ``UserNotFound``."""


class UserRepository(Protocol):
    """Persists users."""

    async def save_user(self, user: User) -> None:
        """Insert or replace the user record."""


class AvailableSlotsProvider(Protocol):
    """Merges live reservations into templates and keeps slots with free seats."""

    async def available_slots(self, templates: Sequence[Slot]) -> List[Slot]:
        """Return merged slots that still have capacity."""


class HasAvailableSlotsProvider(Protocol):
    """Answers whether any template still has a free seat."""

    async def has_available_slots(self, templates: Sequence[Slot]) -> bool:
        """Return True if at least one slot is not full."""


class ReservedSlotsProvider(Protocol):
    """Merges live reservations into templates and keeps non-empty slots."""

    async def reserved_slots(self, templates: Sequence[Slot]) -> List[Slot]:
        """Return merged slots holding at least one reservation."""


class ReservedSlotProvider(Protocol):
    """Merges live reservations into a single template."""

    async def reserved_slot(self, template: Slot) -> Slot:
        """Return the slot with its current reservations and revision."""


class SlotsRepository(Protocol):
    """Persists a slot's full reservation list."""

    async def save_slot(self, slot: Slot) -> None:
        """
        Replace every stored reservation of the slot's start time.

        Raises ``ConcurrentUpdateError`` when the stored revision no longer
        matches ``slot.revision``.
        """


class SlotStore(
    AvailableSlotsProvider,
    HasAvailableSlotsProvider,
    ReservedSlotsProvider,
    ReservedSlotProvider,
    SlotsRepository,
    UserProvider,
    UserRepository,
    Protocol,
):
    """Everything a complete storage adapter offers."""
