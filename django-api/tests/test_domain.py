"""Unit tests for domain primitives.

These test invariants that must hold at construction time.
Run with: pytest tests/test_domain.py -v
"""

import uuid

import pytest

from events.domain import (
    Capacity,
    Email,
    EventId,
    GuestRegistration,
    MemberRegistration,
    RegistrationStatus,
)
from events.domain.errors import ErrorCode, NotRegisteredError, ValidationFailedError
from tests.helpers import NOW, make_event


class TestCapacity:
    """Tests for Capacity value object."""

    def test_capacity_accepts_positive_value(self):
        assert Capacity(3).value == 3

    def test_capacity_rejects_zero(self):
        with pytest.raises(ValueError):
            Capacity(0)

    def test_capacity_rejects_negative_value(self):
        with pytest.raises(ValueError):
            Capacity(-1)

    def test_capacity_rejects_non_integer(self):
        with pytest.raises(ValueError):
            Capacity(True)


class TestEmail:
    """Tests for Email value object."""

    def test_strips_whitespace(self):
        assert Email("  guest@example.com ").value == "guest@example.com"

    def test_matches_case_insensitively(self):
        assert Email("Guest@Example.com").matches("guest@EXAMPLE.com")

    def test_rejects_blank(self):
        with pytest.raises(ValueError):
            Email("  ")

    def test_rejects_missing_at_sign(self):
        with pytest.raises(ValueError):
            Email("not-an-address")


class TestEventId:
    """Tests for EventId value object."""

    def test_from_string_valid_uuid(self):
        raw = uuid.uuid4()
        assert EventId.from_string(str(raw)).value == raw

    def test_from_string_invalid_uuid(self):
        with pytest.raises(ValueError):
            EventId.from_string("not-a-uuid")


class TestRegistrationStatus:
    def test_cancelled_is_not_active(self):
        assert not RegistrationStatus.CANCELLED.is_active
        assert RegistrationStatus.CONFIRMED.is_active
        assert RegistrationStatus.WAITLISTED.is_active


class TestEventCounts:
    """Confirmed counting spans members and guests."""

    def test_confirmed_count_includes_guests(self):
        event = make_event(
            capacity=Capacity(2),
            registered_members=(
                MemberRegistration("m1", RegistrationStatus.CONFIRMED, NOW),
                MemberRegistration("m2", RegistrationStatus.CANCELLED, NOW),
            ),
            guest_registrations=(
                GuestRegistration("Guest", Email("g@example.com"), RegistrationStatus.CONFIRMED, NOW),
            ),
        )
        assert event.confirmed_count == 2
        assert event.is_at_capacity

    def test_guest_entry_lookup_ignores_case(self):
        guest = GuestRegistration("Guest", Email("G@Example.com"), RegistrationStatus.WAITLISTED, NOW)
        event = make_event(guest_registrations=(guest,))
        assert event.guest_entry("g@example.COM") == guest


class TestDomainErrors:
    def test_str_includes_code(self):
        assert str(NotRegisteredError()).startswith("NOT_REGISTERED")

    def test_validation_error_carries_details(self):
        error = ValidationFailedError("bad", {"name": ["required"]})
        assert error.code is ErrorCode.VALIDATION_FAILED
        assert error.details == {"name": ["required"]}
