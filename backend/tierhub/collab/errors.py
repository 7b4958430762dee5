"""Errors raised while handling client protocol events."""

from __future__ import annotations


class ProtocolError(Exception):
    """Base class for event failures reported back to the sender."""

    code = "PROTOCOL_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class NotJoinedError(ProtocolError):
    """Raised when a room event arrives from a connection outside any room."""

    code = "NOT_JOINED"

    def __init__(self, message: str = "join a room first") -> None:
        super().__init__(message)


class EventValidationError(ProtocolError):
    """Raised when an event is well-formed but cannot apply to the room."""

    code = "VALIDATION_ERROR"


class UnknownEventError(ProtocolError):
    code = "UNKNOWN_EVENT"

    def __init__(self, event_type: str) -> None:
        super().__init__(f"unknown event type: {event_type!r}")
        self.event_type = event_type
