"""Domain error codes for the events module."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_EVENT_ID = "INVALID_EVENT_ID"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    NOT_REGISTERED = "NOT_REGISTERED"
    SERVER_BUSY = "SERVER_BUSY"
    TIMEOUT = "TIMEOUT"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str
    details: dict[str, Any] | None = field(default=None, compare=False)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationFailedError(DomainError):
    """Raised when input is malformed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_FAILED,
            message=message,
            details=details,
        )


class InvalidEventIdError(DomainError):
    """Raised when an event ID is invalid."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_EVENT_ID,
            message="Invalid event ID format",
        )


class EventNotFoundError(DomainError):
    """Raised when an event is not found."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_FOUND,
            message="Event not found",
        )


class ForbiddenError(DomainError):
    """Raised on a role or ownership violation."""

    def __init__(self, message: str = "You are not allowed to perform this action") -> None:
        super().__init__(code=ErrorCode.FORBIDDEN, message=message)


class NotEligibleError(DomainError):
    """Raised when a member's region or campus is outside the event's targeting."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NOT_ELIGIBLE,
            message="You are not eligible to register for this event",
        )


class NotRegisteredError(DomainError):
    """Raised when cancelling without an active registration."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NOT_REGISTERED,
            message="You are not registered for this event",
        )


class ServerBusyError(DomainError):
    """Raised when concurrent writes keep conflicting past the retry budget."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.SERVER_BUSY,
            message="The event is busy, please retry",
        )


class StoreTimeoutError(DomainError):
    """Raised when the request deadline expires or the store does not answer."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.TIMEOUT,
            message="The request timed out",
        )
