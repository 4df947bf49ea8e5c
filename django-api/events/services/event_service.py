"""Event service - all business logic lives here.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors

Every write is optimistic: read a snapshot, decide, then write conditioned on
the snapshot's version. A conflicting write re-reads and re-decides, with
exponential backoff, until the retry budget or the deadline runs out.
"""

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import TypeVar

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_random_exponential,
)

from events.domain import (
    AnonymousCaller,
    Caller,
    Capacity,
    Email,
    Event,
    EventId,
    EventInput,
    GuestRegistrant,
    MemberRegistrant,
    RegistrationResult,
    Role,
    TargetingSnapshot,
    UserProfile,
)
from events.domain.eligibility import can_manage, is_eligible, is_visible_to, resolve_targeting
from events.domain.errors import (
    EventNotFoundError,
    ForbiddenError,
    InvalidEventIdError,
    NotEligibleError,
    ServerBusyError,
    ValidationFailedError,
)
from events.domain.registration import (
    AlreadyRegistered,
    CancellationEffect,
    decide_cancellation,
    decide_capacity_change,
    decide_registration,
)
from events.services.deadline import Deadline
from events.stores.interfaces import EventStore, UserDirectory

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BACKOFF_DOUBLINGS = 6

UPCOMING = "upcoming"
PAST = "past"


class WriteConflictError(Exception):
    """A conditional write lost to a concurrent writer."""

    def __init__(self, event_id: EventId) -> None:
        super().__init__(f"Event {event_id} changed since it was read")
        self.event_id = event_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventService:
    """Service for event management and registration."""

    def __init__(
        self,
        store: EventStore,
        directory: UserDirectory,
        *,
        max_retries: int = 3,
        backoff_seconds: float = 0.01,
        timeout_seconds: float = 5.0,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._directory = directory
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._sleep = sleep

    # Queries

    def list_events(
        self,
        caller: Caller | AnonymousCaller,
        when: str | None = None,
    ) -> list[Event]:
        """Return the events ``caller`` may see, ordered by date.

        Raises:
            ValidationFailedError: If ``when`` is not "upcoming" or "past".
        """
        if when not in (None, UPCOMING, PAST):
            raise ValidationFailedError(
                "Invalid filter", {"when": [f"Must be one of: {UPCOMING}, {PAST}."]}
            )
        events = [e for e in self._store.list_events() if is_visible_to(e, caller)]
        if when is not None:
            start = self._start_of_today()
            upcoming = when == UPCOMING
            events = [e for e in events if (e.date >= start) == upcoming]
        return sorted(events, key=lambda e: e.date)

    def list_public_events(self) -> list[Event]:
        """Return upcoming events created by admins, for unauthenticated visitors."""
        admin_ids = self._directory.list_admin_ids()
        start = self._start_of_today()
        events = [
            e
            for e in self._store.list_events()
            if e.created_by in admin_ids and e.date >= start
        ]
        return sorted(events, key=lambda e: e.date)

    def get_event(
        self,
        caller: Caller | AnonymousCaller,
        event_id: str | EventId,
    ) -> Event:
        """Return an event by ID.

        Raises:
            InvalidEventIdError: If the event_id is not a valid UUID.
            EventNotFoundError: If the event does not exist.
            ForbiddenError: If the caller's targeting excludes the event.
        """
        event = self._load(self._parse_id(event_id))
        if not is_visible_to(event, caller):
            raise ForbiddenError("You are not allowed to view this event")
        return event

    def get_attendance(
        self,
        caller: Caller | AnonymousCaller,
        event: Event,
    ) -> dict[str, UserProfile] | None:
        """Return profiles of the event's creator and registered members.

        Only admins and the leader who created the event see registrants;
        everyone else gets None.
        """
        if not can_manage(event, caller):
            return None
        user_ids = {event.created_by, *(m.member_id for m in event.registered_members)}
        return self._directory.describe(user_ids)

    # Event management

    def create_event(
        self,
        caller: Caller | AnonymousCaller,
        data: EventInput,
        deadline: Deadline | None = None,
    ) -> Event:
        """Create an event owned by ``caller``.

        Omitted regions/campuses resolve to every region/campus currently in
        the directory.

        Raises:
            ForbiddenError: If the caller is not an Admin or Leader.
            ValidationFailedError: If the input is invalid.
        """
        if caller.is_anonymous or caller.role not in (Role.ADMIN, Role.LEADER):
            raise ForbiddenError("Only admins and leaders can create events")
        deadline = deadline or self._deadline()
        self._validate_details(data)

        known = TargetingSnapshot()
        if not data.regions or not data.campuses:
            known = TargetingSnapshot(
                regions=frozenset(self._directory.list_all_regions()),
                campuses=frozenset(self._directory.list_all_campuses()),
            )
        regions, campuses = resolve_targeting(data.regions, data.campuses, known)

        deadline.check()
        event = self._store.add_event(
            Event(
                id=EventId(uuid.uuid4()),
                name=data.name.strip(),
                description=data.description.strip(),
                location=data.location.strip(),
                date=data.date,
                capacity=Capacity(data.capacity),
                created_by=caller.user_id,
                regions=regions,
                campuses=campuses,
                image_url=data.image_url or None,
            )
        )
        logger.info("Created event %s by %s", event.id, caller.user_id)
        return event

    def update_event(
        self,
        caller: Caller | AnonymousCaller,
        event_id: str | EventId,
        data: EventInput,
        deadline: Deadline | None = None,
    ) -> Event:
        """Replace an event's details.

        Omitted regions/campuses keep their current values. Raising the
        capacity promotes waitlisted registrants into the new slots.

        Raises:
            InvalidEventIdError, EventNotFoundError, ForbiddenError,
            ValidationFailedError, ServerBusyError, StoreTimeoutError
        """
        eid = self._parse_id(event_id)
        self._authorize_management(self._load(eid), caller)
        self._validate_details(data)

        def attempt(event: Event) -> tuple[bool, Event]:
            self._authorize_management(event, caller)
            promotions = decide_capacity_change(event, data.capacity)
            updated = replace(
                event,
                name=data.name.strip(),
                description=data.description.strip(),
                location=data.location.strip(),
                date=data.date,
                capacity=Capacity(data.capacity),
                regions=event.regions if data.regions is None else data.regions,
                campuses=event.campuses if data.campuses is None else data.campuses,
                image_url=data.image_url or None,
            )
            committed = self._store.update_event(updated, event.version, promotions)
            if committed and promotions:
                logger.info(
                    "Capacity change on event %s promoted %d waitlisted registrants",
                    eid,
                    len(promotions),
                )
            return committed, updated

        self._with_retries(eid, attempt, deadline or self._deadline())
        logger.info("Updated event %s by %s", eid, caller.user_id)
        return self._load(eid)

    def delete_event(
        self,
        caller: Caller | AnonymousCaller,
        event_id: str | EventId,
        deadline: Deadline | None = None,
    ) -> None:
        """Delete an event.

        Raises:
            InvalidEventIdError, EventNotFoundError, ForbiddenError
        """
        eid = self._parse_id(event_id)
        (deadline or self._deadline()).check()
        self._authorize_management(self._load(eid), caller)
        if not self._store.delete_event(eid):
            raise EventNotFoundError()
        logger.info("Deleted event %s by %s", eid, caller.user_id)

    # Registration

    def register_member(
        self,
        caller: Caller | AnonymousCaller,
        event_id: str | EventId,
        deadline: Deadline | None = None,
    ) -> RegistrationResult:
        """Register the calling member, confirmed or waitlisted.

        Raises:
            InvalidEventIdError, EventNotFoundError, ForbiddenError,
            NotEligibleError, ServerBusyError, StoreTimeoutError
        """
        eid = self._parse_id(event_id)
        event = self._load(eid)
        if caller.is_anonymous or caller.role is not Role.MEMBER:
            raise ForbiddenError("Only members can register for events")
        eligibility = self._directory.get_eligibility(caller.user_id)
        if not is_eligible(event, eligibility.region, eligibility.campus):
            raise NotEligibleError()

        registrant = MemberRegistrant(member_id=caller.user_id)
        result = self._register(eid, registrant, deadline or self._deadline())
        logger.info(
            "Member %s registration on event %s: %s%s",
            caller.user_id,
            eid,
            result.status.value,
            " (already registered)" if result.already_registered else "",
        )
        return result

    def register_guest(
        self,
        event_id: str | EventId,
        name: str,
        email: str,
        phone: str | None = None,
        deadline: Deadline | None = None,
    ) -> RegistrationResult:
        """Register an unauthenticated guest. Guests are not region-filtered.

        Raises:
            InvalidEventIdError, EventNotFoundError, ValidationFailedError,
            ServerBusyError, StoreTimeoutError
        """
        eid = self._parse_id(event_id)
        self._load(eid)

        errors: dict[str, list[str]] = {}
        if not (name or "").strip():
            errors["name"] = ["This field is required."]
        guest_email = None
        try:
            guest_email = Email(email or "")
        except ValueError as exc:
            errors["email"] = [str(exc)]
        if errors:
            raise ValidationFailedError("Name and email are required", errors)

        registrant = GuestRegistrant(name=name.strip(), email=guest_email, phone=phone or None)
        result = self._register(eid, registrant, deadline or self._deadline())
        logger.info(
            "Guest registration on event %s: %s%s",
            eid,
            result.status.value,
            " (already registered)" if result.already_registered else "",
        )
        return result

    def cancel_registration(
        self,
        caller: Caller | AnonymousCaller,
        event_id: str | EventId,
        deadline: Deadline | None = None,
    ) -> None:
        """Cancel the caller's registration and promote from the waitlist.

        Raises:
            InvalidEventIdError, EventNotFoundError, ForbiddenError,
            NotRegisteredError, ServerBusyError, StoreTimeoutError
        """
        if caller.is_anonymous:
            raise ForbiddenError("Authentication required")
        eid = self._parse_id(event_id)
        self._load(eid)

        def attempt(event: Event) -> tuple[bool, CancellationEffect]:
            effect = decide_cancellation(event, caller.user_id)
            committed = self._store.apply_registration_changes(
                eid, event.version, effect.changes
            )
            return committed, effect

        effect = self._with_retries(eid, attempt, deadline or self._deadline())
        logger.info("Member %s cancelled registration on event %s", caller.user_id, eid)
        if effect.promoted is not None:
            logger.info("Promoted waitlisted registrant on event %s", eid)

    # Internals

    def _register(
        self,
        eid: EventId,
        registrant: MemberRegistrant | GuestRegistrant,
        deadline: Deadline,
    ) -> RegistrationResult:
        def attempt(event: Event) -> tuple[bool, RegistrationResult]:
            decision = decide_registration(event, registrant, self._clock())
            if isinstance(decision, AlreadyRegistered):
                return True, RegistrationResult(status=decision.status, already_registered=True)
            committed = self._store.apply_registration_changes(
                eid, event.version, (decision.entry,)
            )
            return committed, RegistrationResult(status=decision.status)

        return self._with_retries(eid, attempt, deadline)

    def _with_retries(
        self,
        eid: EventId,
        attempt: Callable[[Event], tuple[bool, T]],
        deadline: Deadline,
    ) -> T:
        backoff = wait_random_exponential(
            multiplier=self._backoff_seconds,
            max=self._backoff_seconds * 2**MAX_BACKOFF_DOUBLINGS,
        )
        retrying = Retrying(
            stop=stop_after_attempt(self._max_retries + 1) | stop_after_delay(deadline.remaining()),
            wait=lambda retry_state: min(backoff(retry_state), deadline.remaining()),
            retry=retry_if_exception_type(WriteConflictError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
        )

        def write() -> T:
            deadline.check()
            committed, result = attempt(self._load(eid))
            if not committed:
                raise WriteConflictError(eid)
            return result

        try:
            return retrying(write)
        except RetryError as exc:
            deadline.check()
            logger.error(
                "Giving up on event %s after %d conflicts",
                eid,
                exc.last_attempt.attempt_number,
            )
            raise ServerBusyError() from exc

    def _load(self, eid: EventId) -> Event:
        event = self._store.get_event(eid)
        if event is None:
            raise EventNotFoundError()
        return event

    def _deadline(self) -> Deadline:
        return Deadline.after(self._timeout_seconds)

    def _start_of_today(self) -> datetime:
        return self._clock().replace(hour=0, minute=0, second=0, microsecond=0)

    @staticmethod
    def _parse_id(event_id: str | EventId) -> EventId:
        if isinstance(event_id, EventId):
            return event_id
        try:
            return EventId.from_string(event_id)
        except (ValueError, TypeError, AttributeError) as exc:
            raise InvalidEventIdError() from exc

    @staticmethod
    def _authorize_management(event: Event, caller: Caller | AnonymousCaller) -> None:
        if not can_manage(event, caller):
            raise ForbiddenError("Only the creator of this event can modify it")

    @staticmethod
    def _validate_details(data: EventInput) -> None:
        errors: dict[str, list[str]] = {}
        for field_name in ("name", "description", "location"):
            if not (getattr(data, field_name) or "").strip():
                errors[field_name] = ["This field is required."]
        if data.date is None:
            errors["date"] = ["This field is required."]
        try:
            Capacity(data.capacity)
        except ValueError as exc:
            errors["capacity"] = [str(exc)]
        if errors:
            raise ValidationFailedError("Invalid event data", errors)
