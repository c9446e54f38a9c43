"""
Domain-specific exception hierarchy for the migreg application.
"""


class MigregError(Exception):
    """Base class for all application-level errors."""


class InvalidValue(MigregError, ValueError):
    """Raised when a value object is constructed from malformed input."""


class InvalidInterval(MigregError, ValueError):
    """Raised when an interval is empty, reversed or crosses midnight."""


class MaxCapacityExceeded(MigregError):
    """Raised when a slot already holds ``max_size`` reservations."""

    def __init__(self, max_size: int):
        super().__init__(f"max capacity={max_size} exceeded")
        self.max_size = max_size


class SlotAlreadyReserved(MigregError):
    """Raised when a user tries to book the same slot twice."""

    def __init__(self, user_id: int):
        super().__init__(f"slot already reserved by user {user_id}")
        self.user_id = user_id


class UserNotReserved(MigregError):
    """Raised when cancelling a reservation the user does not hold."""

    def __init__(self, user_id: int):
        super().__init__(f"user {user_id} has no reservation in this slot")
        self.user_id = user_id


class SlotNotFoundError(MigregError):
    """Raised when no available slot starts at the requested time."""

    def __init__(self, time=None):
        message = "slot not found" if time is None else f"slot not found at {time}"
        super().__init__(message)
        self.time = time


class UserNotFound(MigregError):
    """Raised when a user id is not registered."""

    def __init__(self, user_id: int):
        super().__init__(f"user {user_id} not found")
        self.user_id = user_id


class StorageError(MigregError):
    """Raised when the reservation store fails; wraps the driver error."""


class ConcurrentUpdateError(StorageError):
    """Raised when a slot was modified by another request since it was read."""

    def __init__(self, start):
        super().__init__(f"slot {start} was modified concurrently")
        self.start = start
