"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in events/models.py (persistence layer).
"""

from dataclasses import dataclass, field
from datetime import datetime

from events.domain.value_objects import Capacity, Email, EventId, RegistrationStatus, Role


@dataclass(frozen=True)
class MemberRegistration:
    """A member's registration entry on an event."""

    member_id: str
    status: RegistrationStatus
    registration_date: datetime


@dataclass(frozen=True)
class GuestRegistration:
    """An unauthenticated guest's registration entry on an event."""

    name: str
    email: Email
    status: RegistrationStatus
    registration_date: datetime
    phone: str | None = None


RegistrationEntry = MemberRegistration | GuestRegistration


@dataclass(frozen=True)
class Event:
    """Domain representation of an Event.

    ``version`` is the revision marker every conditional write is checked
    against.
    """

    id: EventId
    name: str
    description: str
    location: str
    date: datetime
    capacity: Capacity
    created_by: str
    regions: frozenset[str] = frozenset()
    campuses: frozenset[str] = frozenset()
    image_url: str | None = None
    registered_members: tuple[MemberRegistration, ...] = ()
    guest_registrations: tuple[GuestRegistration, ...] = ()
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def confirmed_count(self) -> int:
        entries = (*self.registered_members, *self.guest_registrations)
        return sum(1 for e in entries if e.status is RegistrationStatus.CONFIRMED)

    @property
    def waitlisted_count(self) -> int:
        entries = (*self.registered_members, *self.guest_registrations)
        return sum(1 for e in entries if e.status is RegistrationStatus.WAITLISTED)

    @property
    def is_at_capacity(self) -> bool:
        return self.confirmed_count >= self.capacity.value

    def member_entry(self, member_id: str) -> MemberRegistration | None:
        for entry in self.registered_members:
            if entry.member_id == member_id:
                return entry
        return None

    def guest_entry(self, email: str) -> GuestRegistration | None:
        for entry in self.guest_registrations:
            if entry.email.matches(email):
                return entry
        return None


@dataclass(frozen=True)
class Caller:
    """Resolved identity of whoever is making a request."""

    user_id: str
    role: Role
    region: str | None = None
    campus: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return False


@dataclass(frozen=True)
class AnonymousCaller:
    """Unauthenticated caller."""

    @property
    def is_anonymous(self) -> bool:
        return True


ANONYMOUS = AnonymousCaller()


@dataclass(frozen=True)
class Eligibility:
    """A user's region/campus assignment from the user directory."""

    region: str | None
    campus: str | None


@dataclass(frozen=True)
class UserProfile:
    """Contact details shown to the people managing an event."""

    user_id: str
    name: str
    email: str
    role: Role | None = None
    region: str | None = None
    campus: str | None = None


@dataclass(frozen=True)
class MemberRegistrant:
    member_id: str


@dataclass(frozen=True)
class GuestRegistrant:
    name: str
    email: Email
    phone: str | None = None


Registrant = MemberRegistrant | GuestRegistrant


@dataclass(frozen=True)
class EventInput:
    """Validated create/update payload.

    ``regions``/``campuses`` of None mean "omitted": resolved to every known
    value on create, left unchanged on update.
    """

    name: str
    description: str
    location: str
    date: datetime
    capacity: int
    regions: frozenset[str] | None = None
    campuses: frozenset[str] | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class RegistrationResult:
    status: RegistrationStatus
    already_registered: bool = False


@dataclass(frozen=True)
class TargetingSnapshot:
    """All regions and campuses known to the directory at one point in time."""

    regions: frozenset[str] = field(default_factory=frozenset)
    campuses: frozenset[str] = field(default_factory=frozenset)
