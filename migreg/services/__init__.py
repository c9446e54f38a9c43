"""
Service layer helpers that orchestrate storage adapters and domain logic.
"""

from .dto import FreeSlot, ReservationRow, SlotView, UserDTO
from .export import export_file_name, reservations_to_csv
from .providers import (
    AvailableSlotsProvider,
    HasAvailableSlotsProvider,
    ReservedSlotProvider,
    ReservedSlotsProvider,
    SlotsRepository,
    SlotStore,
    UserProvider,
    UserRepository,
)
from .scheduling import SchedulingService
from .users import UserService

__all__ = [
    "AvailableSlotsProvider",
    "FreeSlot",
    "HasAvailableSlotsProvider",
    "ReservationRow",
    "ReservedSlotProvider",
    "ReservedSlotsProvider",
    "SchedulingService",
    "SlotStore",
    "SlotView",
    "SlotsRepository",
    "UserDTO",
    "UserProvider",
    "UserRepository",
    "UserService",
    "export_file_name",
    "reservations_to_csv",
]
