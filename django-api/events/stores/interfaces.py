"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from events.domain import AnonymousCaller, Caller, Eligibility, Event, EventId, UserProfile
from events.domain.models import RegistrationEntry


class EventStore(ABC):
    """Interface for event persistence operations.

    Writes that touch registration state are conditional on the version the
    caller read; they return False instead of writing when it has moved on.
    """

    @abstractmethod
    def list_events(self) -> list[Event]:
        """Return all events ordered by date ascending."""
        ...

    @abstractmethod
    def get_event(self, event_id: EventId) -> Event | None:
        """Return an event with both registrant lists, or None if not found."""
        ...

    @abstractmethod
    def add_event(self, event: Event) -> Event:
        """Persist a new event and return it as stored."""
        ...

    @abstractmethod
    def update_event(
        self,
        event: Event,
        expected_version: int,
        changes: Iterable[RegistrationEntry] = (),
    ) -> bool:
        """Write ``event``'s details and upsert ``changes`` if the version matches."""
        ...

    @abstractmethod
    def apply_registration_changes(
        self,
        event_id: EventId,
        expected_version: int,
        changes: Iterable[RegistrationEntry],
    ) -> bool:
        """Upsert registration entries atomically if the version matches.

        Members are keyed by ``member_id`` and guests by lowercased email.
        """
        ...

    @abstractmethod
    def delete_event(self, event_id: EventId) -> bool:
        """Delete an event. Returns False if it did not exist."""
        ...


class UserDirectory(ABC):
    """Read-only view of the member directory."""

    @abstractmethod
    def get_eligibility(self, user_id: str) -> Eligibility:
        ...

    @abstractmethod
    def list_all_regions(self) -> list[str]:
        ...

    @abstractmethod
    def list_all_campuses(self) -> list[str]:
        ...

    @abstractmethod
    def list_admin_ids(self) -> set[str]:
        ...

    @abstractmethod
    def describe(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        """Return profiles keyed by user id. Unknown ids are left out."""
        ...


class IdentityProvider(ABC):
    """Resolves an authenticated principal to a caller identity."""

    @abstractmethod
    def resolve(self, principal: Any) -> Caller | AnonymousCaller:
        ...
