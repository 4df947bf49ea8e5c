"""Registration engine: pure capacity, waitlist and promotion decisions.

Every function here takes an immutable Event snapshot and returns a decision
plus the entries the store must upsert. Nothing is mutated and nothing is
persisted; region/campus restrictions are the service's concern.

Capacity is shared: Confirmed members and Confirmed guests both count
against ``event.capacity``. Promotion scans both lists and picks the earliest
Waitlisted entry by registration date, with members ahead of guests on an
exact tie.
"""

from dataclasses import dataclass, replace
from datetime import datetime

from events.domain.errors import NotRegisteredError, ValidationFailedError
from events.domain.models import (
    Event,
    GuestRegistrant,
    GuestRegistration,
    MemberRegistrant,
    MemberRegistration,
    Registrant,
    RegistrationEntry,
)
from events.domain.value_objects import Capacity, RegistrationStatus


@dataclass(frozen=True)
class Registered:
    """A new or re-activated registration; ``entry`` must be upserted."""

    status: RegistrationStatus
    entry: RegistrationEntry


@dataclass(frozen=True)
class AlreadyRegistered:
    """The registrant already holds an active entry. Nothing to write."""

    status: RegistrationStatus


Decision = Registered | AlreadyRegistered


@dataclass(frozen=True)
class CancellationEffect:
    cancelled: MemberRegistration
    promoted: RegistrationEntry | None = None

    @property
    def changes(self) -> tuple[RegistrationEntry, ...]:
        if self.promoted is None:
            return (self.cancelled,)
        return (self.cancelled, self.promoted)


def decide_registration(event: Event, registrant: Registrant, now: datetime) -> Decision:
    """Decide whether ``registrant`` is Confirmed, Waitlisted or already in."""
    if isinstance(registrant, MemberRegistrant):
        existing = event.member_entry(registrant.member_id)
    elif isinstance(registrant, GuestRegistrant):
        if not registrant.name.strip():
            raise ValidationFailedError("Guest name is required", {"name": ["This field is required."]})
        existing = event.guest_entry(registrant.email.value)
    else:
        raise TypeError(f"Unsupported registrant: {registrant!r}")

    if existing is not None and existing.status.is_active:
        return AlreadyRegistered(status=existing.status)

    confirmed = event.confirmed_count
    # A cancelled entry never counts, so replacing it needs no adjustment.
    status = (
        RegistrationStatus.CONFIRMED
        if confirmed < event.capacity.value
        else RegistrationStatus.WAITLISTED
    )

    if isinstance(registrant, MemberRegistrant):
        entry: RegistrationEntry = MemberRegistration(
            member_id=registrant.member_id,
            status=status,
            registration_date=now,
        )
    else:
        entry = GuestRegistration(
            name=registrant.name.strip(),
            email=registrant.email,
            phone=registrant.phone or None,
            status=status,
            registration_date=now,
        )
    return Registered(status=status, entry=entry)


def decide_cancellation(event: Event, member_id: str) -> CancellationEffect:
    """Cancel ``member_id``'s entry and promote one waitlisted entry if a slot frees.

    Raises:
        NotRegisteredError: If the member has no active entry.
    """
    existing = event.member_entry(member_id)
    if existing is None or not existing.status.is_active:
        raise NotRegisteredError()

    cancelled = replace(existing, status=RegistrationStatus.CANCELLED)
    confirmed = event.confirmed_count
    if existing.status is RegistrationStatus.CONFIRMED:
        confirmed -= 1

    promoted = None
    if confirmed < event.capacity.value:
        queue = [e for e in waitlist(event) if e != existing]
        if queue:
            promoted = replace(queue[0], status=RegistrationStatus.CONFIRMED)
    return CancellationEffect(cancelled=cancelled, promoted=promoted)


def decide_capacity_change(event: Event, new_capacity: int) -> tuple[RegistrationEntry, ...]:
    """Return the waitlisted entries promoted by moving to ``new_capacity``.

    Raises:
        ValidationFailedError: If the capacity is invalid or below the number
            of Confirmed registrants.
    """
    try:
        capacity = Capacity(new_capacity)
    except ValueError as exc:
        raise ValidationFailedError(str(exc), {"capacity": [str(exc)]}) from exc

    confirmed = event.confirmed_count
    if capacity.value < confirmed:
        message = f"Capacity cannot be lower than the {confirmed} confirmed registrations"
        raise ValidationFailedError(message, {"capacity": [message]})

    free = capacity.value - confirmed
    return tuple(
        replace(entry, status=RegistrationStatus.CONFIRMED)
        for entry in waitlist(event)[:free]
    )


def waitlist(event: Event) -> list[RegistrationEntry]:
    """Waitlisted entries of both lists in promotion order."""
    keyed = [
        (entry.registration_date, 0, index, entry)
        for index, entry in enumerate(event.registered_members)
        if entry.status is RegistrationStatus.WAITLISTED
    ]
    keyed += [
        (entry.registration_date, 1, index, entry)
        for index, entry in enumerate(event.guest_registrations)
        if entry.status is RegistrationStatus.WAITLISTED
    ]
    keyed.sort(key=lambda item: item[:3])
    return [item[3] for item in keyed]
