"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from enum import Enum
from typing import Self
from uuid import UUID


@dataclass(frozen=True)
class EventId:
    """Unique identifier for an Event."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Capacity:
    """Positive integer: the maximum number of Confirmed registrants."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValueError("Capacity must be an integer")
        if self.value < 1:
            raise ValueError("Capacity must be at least 1")


@dataclass(frozen=True)
class Email:
    """Guest email; compared case-insensitively."""

    value: str

    def __post_init__(self) -> None:
        stripped = self.value.strip()
        if not stripped or "@" not in stripped:
            raise ValueError("Email must be a valid address")
        object.__setattr__(self, "value", stripped)

    @property
    def normalized(self) -> str:
        return self.value.lower()

    def matches(self, other: str) -> bool:
        return self.normalized == other.strip().lower()


class RegistrationStatus(Enum):
    """Lifecycle states of a registration entry."""

    CONFIRMED = "Confirmed"
    WAITLISTED = "Waitlisted"
    CANCELLED = "Cancelled"

    @property
    def is_active(self) -> bool:
        return self is not RegistrationStatus.CANCELLED


class Role(Enum):
    """Caller roles."""

    ADMIN = "Admin"
    LEADER = "Leader"
    MEMBER = "Member"
