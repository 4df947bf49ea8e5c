from events.domain.models import (
    ANONYMOUS,
    AnonymousCaller,
    Caller,
    Eligibility,
    Event,
    EventInput,
    GuestRegistrant,
    GuestRegistration,
    MemberRegistrant,
    MemberRegistration,
    RegistrationResult,
    TargetingSnapshot,
    UserProfile,
)
from events.domain.value_objects import Capacity, Email, EventId, RegistrationStatus, Role

__all__ = [
    "ANONYMOUS",
    "AnonymousCaller",
    "Caller",
    "Eligibility",
    "Event",
    "EventInput",
    "GuestRegistrant",
    "GuestRegistration",
    "MemberRegistrant",
    "MemberRegistration",
    "RegistrationResult",
    "TargetingSnapshot",
    "UserProfile",
    "Capacity",
    "Email",
    "EventId",
    "RegistrationStatus",
    "Role",
]
