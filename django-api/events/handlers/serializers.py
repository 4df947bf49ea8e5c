"""Serializers for request validation and domain-to-response mapping."""

from rest_framework import serializers

from events.domain import EventInput


class EventInputSerializer(serializers.Serializer):
    """Validates create/update payloads."""

    name = serializers.CharField(max_length=255)
    description = serializers.CharField()
    location = serializers.CharField(max_length=255)
    date = serializers.DateTimeField()
    capacity = serializers.IntegerField(min_value=1)
    regions = serializers.ListField(
        child=serializers.CharField(max_length=100), required=False
    )
    campuses = serializers.ListField(
        child=serializers.CharField(max_length=100), required=False
    )
    image_url = serializers.URLField(
        max_length=500, required=False, allow_null=True, allow_blank=True
    )

    def to_domain(self) -> EventInput:
        data = self.validated_data
        regions = data.get("regions")
        campuses = data.get("campuses")
        return EventInput(
            name=data["name"],
            description=data["description"],
            location=data["location"],
            date=data["date"],
            capacity=data["capacity"],
            regions=frozenset(regions) if regions is not None else None,
            campuses=frozenset(campuses) if campuses is not None else None,
            image_url=data.get("image_url") or None,
        )


class GuestRegistrationInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)


class UserProfileSerializer(serializers.Serializer):
    name = serializers.CharField()
    email = serializers.CharField()
    role = serializers.CharField(source="role.value", allow_null=True)
    region = serializers.CharField(allow_null=True)
    campus = serializers.CharField(allow_null=True)


def _profile(serializer, user_id: str) -> dict | None:
    profile = serializer.context.get("attendance", {}).get(user_id)
    return UserProfileSerializer(profile).data if profile is not None else None


class MemberRegistrationSerializer(serializers.Serializer):
    member_id = serializers.CharField()
    member = serializers.SerializerMethodField()
    status = serializers.CharField(source="status.value")
    registration_date = serializers.DateTimeField()

    def get_member(self, entry) -> dict | None:
        return _profile(self, entry.member_id)


class GuestRegistrationSerializer(serializers.Serializer):
    name = serializers.CharField()
    email = serializers.CharField(source="email.value")
    phone = serializers.CharField(allow_null=True)
    status = serializers.CharField(source="status.value")
    registration_date = serializers.DateTimeField()


class PublicEventSerializer(serializers.Serializer):
    """Event details without registrant lists."""

    id = serializers.UUIDField(source="id.value")
    name = serializers.CharField()
    description = serializers.CharField()
    location = serializers.CharField()
    date = serializers.DateTimeField()
    capacity = serializers.IntegerField(source="capacity.value")
    regions = serializers.SerializerMethodField()
    campuses = serializers.SerializerMethodField()
    image_url = serializers.URLField(allow_null=True)

    def get_regions(self, event) -> list[str]:
        return sorted(event.regions)

    def get_campuses(self, event) -> list[str]:
        return sorted(event.campuses)


class EventSerializer(PublicEventSerializer):
    """Event details with registration counts but no registrants."""

    created_by = serializers.CharField()
    confirmed_count = serializers.IntegerField()
    waitlisted_count = serializers.IntegerField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class ManagedEventSerializer(EventSerializer):
    """Full event for its managers: registrants and contact details.

    Expects an ``attendance`` mapping of user id to profile in the context.
    """

    creator = serializers.SerializerMethodField()
    registered_members = MemberRegistrationSerializer(many=True)
    guest_registrations = GuestRegistrationSerializer(many=True)

    def get_creator(self, event) -> dict | None:
        return _profile(self, event.created_by)


class RegistrationResultSerializer(serializers.Serializer):
    status = serializers.CharField(source="status.value")
    already_registered = serializers.BooleanField()
    message = serializers.SerializerMethodField()

    def get_message(self, result) -> str:
        if result.already_registered:
            return f"Already registered ({result.status.value})"
        if result.status.value == "Confirmed":
            return "Registration confirmed"
        return "Registration added to waitlist"
