"""In-process implementations of the store interfaces.

Used by the test suite and for embedding the service without a database.
A single lock serializes writes; it is held only for the compare-and-swap.
"""

import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timezone

from events.domain import (
    Eligibility,
    Event,
    EventId,
    GuestRegistration,
    MemberRegistration,
    UserProfile,
)
from events.domain.errors import StoreTimeoutError
from events.domain.models import RegistrationEntry
from events.stores.interfaces import EventStore, UserDirectory


def _merge(event: Event, changes: Iterable[RegistrationEntry]) -> Event:
    members = list(event.registered_members)
    guests = list(event.guest_registrations)
    for change in changes:
        if isinstance(change, MemberRegistration):
            for index, entry in enumerate(members):
                if entry.member_id == change.member_id:
                    members[index] = change
                    break
            else:
                members.append(change)
        elif isinstance(change, GuestRegistration):
            for index, entry in enumerate(guests):
                if entry.email.normalized == change.email.normalized:
                    guests[index] = change
                    break
            else:
                guests.append(change)
        else:
            raise TypeError(f"Unsupported registration entry: {change!r}")
    return replace(
        event,
        registered_members=tuple(members),
        guest_registrations=tuple(guests),
    )


class InMemoryEventStore(EventStore):
    """Thread-safe dictionary-backed event store."""

    def __init__(self, lock_timeout: float = 5.0) -> None:
        self._events: dict[EventId, Event] = {}
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    def _acquire(self) -> None:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise StoreTimeoutError()

    def list_events(self) -> list[Event]:
        return sorted(self._events.values(), key=lambda e: e.date)

    def get_event(self, event_id: EventId) -> Event | None:
        return self._events.get(event_id)

    def add_event(self, event: Event) -> Event:
        now = datetime.now(timezone.utc)
        stored = replace(
            event,
            version=0,
            created_at=event.created_at or now,
            updated_at=event.updated_at or now,
        )
        self._acquire()
        try:
            self._events[stored.id] = stored
        finally:
            self._lock.release()
        return stored

    def update_event(
        self,
        event: Event,
        expected_version: int,
        changes: Iterable[RegistrationEntry] = (),
    ) -> bool:
        self._acquire()
        try:
            current = self._events.get(event.id)
            if current is None or current.version != expected_version:
                return False
            updated = replace(
                event,
                registered_members=current.registered_members,
                guest_registrations=current.guest_registrations,
                created_by=current.created_by,
                created_at=current.created_at,
                updated_at=datetime.now(timezone.utc),
                version=expected_version + 1,
            )
            self._events[event.id] = _merge(updated, changes)
            return True
        finally:
            self._lock.release()

    def apply_registration_changes(
        self,
        event_id: EventId,
        expected_version: int,
        changes: Iterable[RegistrationEntry],
    ) -> bool:
        self._acquire()
        try:
            current = self._events.get(event_id)
            if current is None or current.version != expected_version:
                return False
            merged = _merge(current, changes)
            self._events[event_id] = replace(merged, version=expected_version + 1)
            return True
        finally:
            self._lock.release()

    def delete_event(self, event_id: EventId) -> bool:
        self._acquire()
        try:
            return self._events.pop(event_id, None) is not None
        finally:
            self._lock.release()


class InMemoryUserDirectory(UserDirectory):
    """Directory backed by a dict of ``user_id -> Eligibility``."""

    def __init__(
        self,
        members: dict[str, Eligibility] | None = None,
        admin_ids: Iterable[str] = (),
    ) -> None:
        self._members = dict(members or {})
        self._admin_ids = set(admin_ids)
        self._profiles: dict[str, UserProfile] = {}

    def add(
        self,
        user_id: str,
        region: str | None,
        campus: str | None,
        profile: UserProfile | None = None,
    ) -> None:
        self._members[user_id] = Eligibility(region=region, campus=campus)
        if profile is not None:
            self._profiles[user_id] = profile

    def get_eligibility(self, user_id: str) -> Eligibility:
        return self._members.get(user_id, Eligibility(region=None, campus=None))

    def list_all_regions(self) -> list[str]:
        return sorted({e.region for e in self._members.values() if e.region})

    def list_all_campuses(self) -> list[str]:
        return sorted({e.campus for e in self._members.values() if e.campus})

    def list_admin_ids(self) -> set[str]:
        return set(self._admin_ids)

    def describe(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        return {uid: self._profiles[uid] for uid in user_ids if uid in self._profiles}
