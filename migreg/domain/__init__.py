"""
Domain layer - Pure scheduling rules without any I/O.
"""

from .deadline import DeadlinePolicy, FixedDeadlinePolicy, StandardDeadlinePolicy
from .models import (
    Citizenship,
    ClosedRange,
    Country,
    CyrillicName,
    LatinName,
    Reservation,
    Service,
    Slot,
    TimeInterval,
    User,
)
from .slot_factory import FixedSlotFactory, SlotFactory
from .working_hours import (
    SplitWorkingHoursPolicy,
    WeekdayWorkingHoursPolicy,
    WorkingHoursPolicy,
)

__all__ = [
    "Citizenship",
    "ClosedRange",
    "Country",
    "CyrillicName",
    "DeadlinePolicy",
    "FixedDeadlinePolicy",
    "FixedSlotFactory",
    "LatinName",
    "Reservation",
    "Service",
    "Slot",
    "SlotFactory",
    "SplitWorkingHoursPolicy",
    "StandardDeadlinePolicy",
    "TimeInterval",
    "User",
    "WeekdayWorkingHoursPolicy",
    "WorkingHoursPolicy",
]
