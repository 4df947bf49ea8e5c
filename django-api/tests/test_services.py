"""Unit tests for EventService.

These test orchestration, authorization, error mapping and the optimistic
write loop against the in-memory store.
Run with: pytest tests/test_services.py -v
"""

import logging
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from events.domain import (
    ANONYMOUS,
    Capacity,
    EventInput,
    MemberRegistration,
    RegistrationStatus,
    Role,
    UserProfile,
)
from events.domain.errors import (
    EventNotFoundError,
    ForbiddenError,
    InvalidEventIdError,
    NotEligibleError,
    NotRegisteredError,
    ServerBusyError,
    StoreTimeoutError,
    ValidationFailedError,
)
from events.domain.models import Caller
from events.services.deadline import Deadline
from events.services.event_service import EventService
from events.stores.memory_store import InMemoryEventStore
from tests.helpers import NOW, TickingClock, make_event, member

CONFIRMED = RegistrationStatus.CONFIRMED
WAITLISTED = RegistrationStatus.WAITLISTED
CANCELLED = RegistrationStatus.CANCELLED


class ConflictingStore(InMemoryEventStore):
    """Loses the compare-and-swap a fixed number of times."""

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.conflicts = conflicts
        self.write_attempts = 0

    def apply_registration_changes(self, event_id, expected_version, changes):
        self.write_attempts += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            return False
        return super().apply_registration_changes(event_id, expected_version, changes)


def event_input(**overrides) -> EventInput:
    fields = {
        "name": "Leadership summit",
        "description": "Annual summit",
        "location": "Auditorium",
        "date": NOW + timedelta(days=10),
        "capacity": 2,
    }
    fields.update(overrides)
    return EventInput(**fields)


def statuses(store, event) -> dict[str, RegistrationStatus]:
    stored = store.get_event(event.id)
    result = {m.member_id: m.status for m in stored.registered_members}
    result.update({g.email.value: g.status for g in stored.guest_registrations})
    return result


class TestCreateEvent:
    def test_leader_creates_event_with_default_fan_out(self, service, leader):
        event = service.create_event(leader, event_input())
        assert event.created_by == "leader-1"
        assert event.regions == frozenset({"East", "West"})
        assert event.campuses == frozenset({"North Campus", "South Campus"})

    def test_explicit_targeting_is_kept(self, service, admin):
        event = service.create_event(
            admin, event_input(regions=frozenset({"East"}), campuses=frozenset({"North Campus"}))
        )
        assert event.regions == frozenset({"East"})
        assert event.campuses == frozenset({"North Campus"})

    def test_fan_out_is_a_snapshot(self, service, admin, directory):
        event = service.create_event(admin, event_input())
        directory.add("newcomer", "Central", "Central Campus")
        assert "Central" not in service.get_event(admin, event.id).regions

    def test_member_cannot_create(self, service):
        with pytest.raises(ForbiddenError):
            service.create_event(member("member-a"), event_input())

    def test_invalid_input_reports_fields(self, service, admin):
        with pytest.raises(ValidationFailedError) as exc_info:
            service.create_event(admin, event_input(name=" ", capacity=0))
        assert set(exc_info.value.details) == {"name", "capacity"}


class TestGetAndListEvents:
    def test_get_event_invalid_id_raises_error(self, service, admin):
        with pytest.raises(InvalidEventIdError):
            service.get_event(admin, "not-a-uuid")

    def test_get_event_not_found_raises_error(self, service, admin):
        with pytest.raises(EventNotFoundError):
            service.get_event(admin, str(make_event().id))

    def test_get_event_outside_targeting_is_forbidden(self, service, store):
        event = store.add_event(make_event(regions=frozenset({"East"})))
        with pytest.raises(ForbiddenError):
            service.get_event(member("member-west", region="West"), str(event.id))

    def test_list_events_filters_by_visibility(self, service, store):
        east = store.add_event(make_event(name="East", regions=frozenset({"East"})))
        store.add_event(make_event(name="West", regions=frozenset({"West"})))
        open_event = store.add_event(make_event(name="Open", date=NOW + timedelta(days=1)))
        visible = service.list_events(member("member-a"))
        assert [e.id for e in visible] == [open_event.id, east.id]

    def test_list_events_when_filter(self, service, store, admin):
        past = store.add_event(make_event(date=NOW - timedelta(days=3)))
        upcoming = store.add_event(make_event(date=NOW + timedelta(days=3)))
        assert [e.id for e in service.list_events(admin, when="past")] == [past.id]
        assert [e.id for e in service.list_events(admin, when="upcoming")] == [upcoming.id]

    def test_list_events_rejects_unknown_filter(self, service, admin):
        with pytest.raises(ValidationFailedError):
            service.list_events(admin, when="someday")

    def test_public_events_are_upcoming_and_admin_created(self, service, store):
        shown = store.add_event(make_event(created_by="admin-1"))
        store.add_event(make_event(created_by="leader-1"))
        store.add_event(make_event(created_by="admin-1", date=NOW - timedelta(days=2)))
        assert [e.id for e in service.list_public_events()] == [shown.id]


class TestAttendance:
    def test_creator_sees_member_profiles(self, service, store, directory, leader):
        ada = UserProfile("member-a", "Ada", "ada@example.com", Role.MEMBER, "East", "North Campus")
        directory.add("member-a", "East", "North Campus", profile=ada)
        event = store.add_event(make_event())
        service.register_member(member("member-a"), event.id)

        attendance = service.get_attendance(leader, service.get_event(leader, event.id))
        assert attendance == {"member-a": ada}

    def test_admin_sees_attendance_of_any_event(self, service, store, admin):
        event = store.add_event(make_event(created_by="someone-else"))
        assert service.get_attendance(admin, event) == {}

    @pytest.mark.parametrize(
        "caller",
        [member("member-a"), Caller("leader-2", Role.LEADER, "East", "North Campus"), ANONYMOUS],
    )
    def test_others_get_nothing(self, service, store, caller):
        event = store.add_event(make_event())
        assert service.get_attendance(caller, event) is None


class TestUpdateAndDeleteEvent:
    def test_leader_cannot_update_foreign_event(self, service, store):
        event = store.add_event(make_event(created_by="leader-2"))
        leader = Caller("leader-1", Role.LEADER, "East", "North Campus")
        with pytest.raises(ForbiddenError):
            service.update_event(leader, str(event.id), event_input())

    def test_update_keeps_targeting_when_omitted(self, service, store, leader):
        event = store.add_event(make_event(regions=frozenset({"East"})))
        updated = service.update_event(leader, str(event.id), event_input(name="Renamed"))
        assert updated.name == "Renamed"
        assert updated.regions == frozenset({"East"})
        assert updated.version == event.version + 1

    def test_update_can_clear_targeting(self, service, store, leader):
        event = store.add_event(make_event(regions=frozenset({"East"})))
        updated = service.update_event(leader, str(event.id), event_input(regions=frozenset()))
        assert updated.regions == frozenset()

    def test_raising_capacity_promotes_waitlist(self, service, store, leader):
        event = store.add_event(make_event(capacity=Capacity(1)))
        service.register_member(member("member-a"), event.id)
        service.register_member(member("member-c"), event.id)
        service.update_event(leader, event.id, event_input(capacity=2))
        assert statuses(store, event) == {"member-a": CONFIRMED, "member-c": CONFIRMED}

    def test_capacity_cannot_drop_below_confirmed(self, service, store, leader):
        event = store.add_event(make_event(capacity=Capacity(2)))
        service.register_member(member("member-a"), event.id)
        service.register_member(member("member-c"), event.id)
        with pytest.raises(ValidationFailedError):
            service.update_event(leader, event.id, event_input(capacity=1))
        assert store.get_event(event.id).capacity == Capacity(2)

    def test_admin_deletes_event(self, service, store, admin):
        event = store.add_event(make_event())
        service.delete_event(admin, str(event.id))
        with pytest.raises(EventNotFoundError):
            service.delete_event(admin, str(event.id))

    def test_member_cannot_delete(self, service, store):
        event = store.add_event(make_event())
        with pytest.raises(ForbiddenError):
            service.delete_event(member("member-a"), event.id)
        assert store.get_event(event.id) is not None


class TestRegisterMember:
    def test_promotion_scenario(self, service, store):
        """capacity=2: A, B confirmed, C waitlisted; A cancels, C is promoted."""
        event = store.add_event(make_event(capacity=Capacity(2)))
        a, b, c = member("member-a"), member("member-b", campus="South Campus"), member("member-c")
        assert service.register_member(a, event.id).status is CONFIRMED
        assert service.register_member(b, event.id).status is CONFIRMED
        assert service.register_member(c, event.id).status is WAITLISTED

        service.cancel_registration(a, event.id)

        assert statuses(store, event) == {
            "member-a": CANCELLED,
            "member-b": CONFIRMED,
            "member-c": CONFIRMED,
        }

    def test_idempotent_re_registration(self, service, store):
        event = store.add_event(make_event())
        first = service.register_member(member("member-a"), event.id)
        second = service.register_member(member("member-a"), event.id)
        assert first.status is second.status is CONFIRMED
        assert second.already_registered
        assert len(store.get_event(event.id).registered_members) == 1

    def test_re_registration_after_cancel_reuses_entry(self, service, store):
        event = store.add_event(make_event())
        service.register_member(member("member-a"), event.id)
        service.cancel_registration(member("member-a"), event.id)
        result = service.register_member(member("member-a"), event.id)
        assert result.status is CONFIRMED and not result.already_registered
        assert len(store.get_event(event.id).registered_members) == 1

    def test_region_mismatch_is_not_eligible(self, service, store):
        event = store.add_event(make_event(regions=frozenset({"East"}), campuses=frozenset()))
        with pytest.raises(NotEligibleError):
            service.register_member(member("member-west", region="West"), event.id)
        assert service.register_member(member("member-b"), event.id).status is CONFIRMED

    def test_eligibility_comes_from_directory(self, service, store):
        event = store.add_event(make_event(regions=frozenset({"East"})))
        stale = member("member-west", region="East")
        with pytest.raises(NotEligibleError):
            service.register_member(stale, event.id)

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.LEADER])
    def test_non_members_are_forbidden(self, service, store, role):
        event = store.add_event(make_event())
        with pytest.raises(ForbiddenError):
            service.register_member(Caller("leader-1", role, "East", "North Campus"), event.id)

    def test_missing_event_is_not_found(self, service):
        with pytest.raises(EventNotFoundError):
            service.register_member(member("member-a"), make_event().id)


class TestRegisterGuest:
    def test_guest_shares_capacity_with_members(self, service, store):
        event = store.add_event(make_event(capacity=Capacity(1)))
        assert service.register_member(member("member-a"), event.id).status is CONFIRMED
        result = service.register_guest(event.id, "Ada", "ada@example.com")
        assert result.status is WAITLISTED

    def test_duplicate_email_is_already_registered(self, service, store):
        event = store.add_event(make_event())
        service.register_guest(event.id, "Ada", "ada@example.com", phone="555")
        again = service.register_guest(event.id, "Ada", "ADA@example.com")
        assert again.already_registered and again.status is CONFIRMED
        assert len(store.get_event(event.id).guest_registrations) == 1

    def test_guests_are_not_region_filtered(self, service, store):
        event = store.add_event(make_event(regions=frozenset({"Nowhere"})))
        assert service.register_guest(event.id, "Ada", "ada@example.com").status is CONFIRMED

    def test_missing_fields_fail_validation(self, service, store):
        event = store.add_event(make_event())
        with pytest.raises(ValidationFailedError) as exc_info:
            service.register_guest(event.id, "", "nope")
        assert set(exc_info.value.details) == {"name", "email"}

    def test_waitlisted_guest_is_promoted_by_member_cancel(self, service, store):
        event = store.add_event(make_event(capacity=Capacity(1)))
        service.register_member(member("member-a"), event.id)
        service.register_guest(event.id, "Ada", "ada@example.com")
        service.cancel_registration(member("member-a"), event.id)
        assert statuses(store, event)["ada@example.com"] is CONFIRMED


class TestCancelRegistration:
    def test_not_registered_leaves_state_unchanged(self, service, store):
        event = store.add_event(make_event())
        service.register_member(member("member-a"), event.id)
        before = store.get_event(event.id)
        with pytest.raises(NotRegisteredError):
            service.cancel_registration(member("member-c"), event.id)
        assert store.get_event(event.id) == before

    def test_double_cancel_is_not_registered(self, service, store):
        event = store.add_event(make_event())
        service.register_member(member("member-a"), event.id)
        service.cancel_registration(member("member-a"), event.id)
        with pytest.raises(NotRegisteredError):
            service.cancel_registration(member("member-a"), event.id)


class TestOptimisticWrites:
    def make_service(self, store, directory, **kwargs) -> EventService:
        return EventService(store, directory, clock=TickingClock(), sleep=lambda _: None, **kwargs)

    def test_conflicts_are_retried(self, directory):
        store = ConflictingStore(conflicts=2)
        service = self.make_service(store, directory, max_retries=3)
        event = store.add_event(make_event())
        assert service.register_member(member("member-a"), event.id).status is CONFIRMED
        assert store.write_attempts == 3

    def test_exhausted_retries_surface_server_busy(self, directory):
        store = ConflictingStore(conflicts=10)
        service = self.make_service(store, directory, max_retries=2)
        event = store.add_event(make_event())
        with pytest.raises(ServerBusyError):
            service.register_member(member("member-a"), event.id)
        assert store.write_attempts == 3
        assert store.get_event(event.id).registered_members == ()

    def test_backoff_grows_and_conflicts_are_logged(self, directory, caplog, monkeypatch):
        monkeypatch.setattr(logging.getLogger("events"), "propagate", True)
        store = ConflictingStore(conflicts=3)
        sleeps = []
        service = EventService(
            store,
            directory,
            max_retries=3,
            backoff_seconds=0.01,
            clock=TickingClock(),
            sleep=sleeps.append,
        )
        event = store.add_event(make_event())
        with caplog.at_level(logging.WARNING, logger="events.services.event_service"):
            service.register_member(member("member-a"), event.id)

        assert len(sleeps) == 3
        assert all(0 <= delay <= 0.01 * 2**i for i, delay in enumerate(sleeps))
        assert sum("WriteConflictError" in r.getMessage() for r in caplog.records) == 3

    def test_not_found_is_not_retried(self, directory):
        store = ConflictingStore(conflicts=0)
        service = self.make_service(store, directory)
        with pytest.raises(EventNotFoundError):
            service.register_guest(make_event().id, "Ada", "ada@example.com")
        assert store.write_attempts == 0

    def test_expired_deadline_times_out(self, service, store):
        event = store.add_event(make_event())
        with pytest.raises(StoreTimeoutError):
            service.register_member(member("member-a"), event.id, deadline=Deadline.after(-1))

    def test_stale_version_is_rejected_by_store(self, store):
        event = store.add_event(make_event())
        entry = MemberRegistration("member-a", CONFIRMED, NOW)
        assert store.apply_registration_changes(event.id, event.version, [entry])
        assert not store.apply_registration_changes(event.id, event.version, [entry])


class TestCapacityInvariant:
    @pytest.mark.parametrize("seed", range(10))
    def test_random_register_cancel_sequences(self, service, store, seed):
        rng = random.Random(seed)
        event = store.add_event(make_event(capacity=Capacity(3)))
        members = [member(f"m{i}") for i in range(8)]

        for _ in range(60):
            caller = rng.choice(members)
            if rng.random() < 0.6:
                service.register_member(caller, event.id)
            else:
                try:
                    service.cancel_registration(caller, event.id)
                except NotRegisteredError:
                    pass

            snapshot = store.get_event(event.id)
            member_ids = [m.member_id for m in snapshot.registered_members]
            assert snapshot.confirmed_count <= 3
            assert len(member_ids) == len(set(member_ids))
            if snapshot.waitlisted_count:
                assert snapshot.confirmed_count == 3


class TestConcurrentRegistration:
    @pytest.mark.parametrize(("attendees", "capacity"), [(20, 5), (12, 1)])
    def test_race_confirms_exactly_capacity(self, directory, attendees, capacity):
        store = InMemoryEventStore()
        service = EventService(
            store,
            directory,
            max_retries=500,
            backoff_seconds=0.001,
            timeout_seconds=30,
            clock=TickingClock(),
        )
        event = store.add_event(make_event(capacity=Capacity(capacity)))
        barrier = threading.Barrier(attendees)

        def register(i: int):
            barrier.wait()
            return service.register_member(member(f"racer-{i}"), event.id).status

        with ThreadPoolExecutor(max_workers=attendees) as pool:
            results = list(pool.map(register, range(attendees)))

        assert results.count(CONFIRMED) == capacity
        assert results.count(WAITLISTED) == attendees - capacity
        snapshot = store.get_event(event.id)
        assert snapshot.confirmed_count == capacity
        assert len(snapshot.registered_members) == attendees
