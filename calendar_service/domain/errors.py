"""Error taxonomy shared by the stores, the service facade and the API."""

from __future__ import annotations

from datetime import datetime
from typing import Any


class CalendarError(Exception):
    """Base exception for calendar service errors."""


class ConfigurationError(CalendarError):
    """Raised when configuration is missing or invalid."""


class ValidationError(CalendarError):
    """Raised for malformed input or an invalid time range."""


class ConflictError(CalendarError):
    """Raised when the requested time slot is already taken."""

    def __init__(self, start: datetime, end: datetime) -> None:
        super().__init__("time slot is already taken")
        self.start = start
        self.end = end


class NotFoundError(CalendarError):
    """Raised when no event has the requested id."""

    def __init__(self, event_id: Any) -> None:
        super().__init__(f"event {event_id} not found")
        self.event_id = event_id


class PersistenceError(CalendarError):
    """Raised when the storage backend fails.

    The original driver exception is always chained as ``__cause__``.
    """

    def __init__(self, operation: str, message: str | None = None) -> None:
        super().__init__(message or f"storage backend failed during {operation}")
        self.operation = operation
