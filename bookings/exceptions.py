"""
Exceptions raised by the booking calculator and services.
"""


class InvalidArgument(ValueError):
    """Raised when the schedule or pricing calculator gets out-of-domain input."""


class BookingStateError(ValueError):
    """Raised when a booking cannot move to the requested status."""


class BookingNotAllowed(ValueError):
    """Raised when a client may not book a treatment (inactive, age limit)."""


class SlotUnavailable(Exception):
    """Raised when a requested time slot overlaps an active booking."""

    def __init__(self, message="slot not available", conflicts=None):
        super().__init__(message)
        self.conflicts = list(conflicts or [])
