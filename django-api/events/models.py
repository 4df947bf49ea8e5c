"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/.
"""

import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models.functions import Lower


class RegistrationStatus(models.TextChoices):
    CONFIRMED = "Confirmed"
    WAITLISTED = "Waitlisted"
    CANCELLED = "Cancelled"


class Membership(models.Model):
    """Directory record: a user's role and region/campus assignment."""

    class Role(models.TextChoices):
        ADMIN = "Admin"
        LEADER = "Leader"
        MEMBER = "Member"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="membership"
    )
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.MEMBER)
    region = models.CharField(max_length=100, blank=True)
    campus = models.CharField(max_length=100, blank=True)
    leader = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="members",
    )

    class Meta:
        indexes = [
            models.Index(fields=["role"], name="membership_role_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.user} ({self.role})"


class Event(models.Model):
    """Persistence model for events.

    ``version`` is bumped by every write and is the compare-and-swap token.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField()
    location = models.CharField(max_length=255)
    date = models.DateTimeField()
    capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    regions = models.JSONField(default=list, blank=True)
    campuses = models.JSONField(default=list, blank=True)
    image_url = models.URLField(max_length=500, blank=True, null=True)
    created_by = models.CharField(max_length=64)
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date"]
        indexes = [
            models.Index(fields=["date"], name="event_date_idx"),
            models.Index(fields=["created_by"], name="event_created_by_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(capacity__gte=1), name="event_capacity_positive"),
        ]

    def __str__(self) -> str:
        return self.name


class MemberRegistration(models.Model):
    """A member's entry; one row per member per event, cancelled rows included."""

    event = models.ForeignKey(
        Event, on_delete=models.CASCADE, related_name="registered_members"
    )
    member_id = models.CharField(max_length=64)
    status = models.CharField(max_length=16, choices=RegistrationStatus.choices)
    registration_date = models.DateTimeField()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "member_id"], name="unique_member_per_event"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.member_id} - {self.status}"


class GuestRegistration(models.Model):
    """An unauthenticated guest's entry; emails are unique per event, any case."""

    event = models.ForeignKey(
        Event, on_delete=models.CASCADE, related_name="guest_registrations"
    )
    name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = models.CharField(max_length=32, blank=True)
    status = models.CharField(max_length=16, choices=RegistrationStatus.choices)
    registration_date = models.DateTimeField()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                Lower("email"), "event", name="unique_guest_email_per_event"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} <{self.email}> - {self.status}"
