"""Django ORM implementations of the store interfaces.

Conditional writes bump ``Event.version`` with ``UPDATE ... WHERE version = ?``
inside ``transaction.atomic()``; if no row matched, nothing else is written.
"""

import logging
from collections.abc import Iterable

from django.contrib.auth import get_user_model
from django.db import OperationalError, transaction
from django.db.models import F, Prefetch
from django.utils import timezone

from events import cache, models
from events.domain import (
    ANONYMOUS,
    AnonymousCaller,
    Caller,
    Capacity,
    Eligibility,
    Email,
    Event,
    EventId,
    GuestRegistration,
    MemberRegistration,
    RegistrationStatus,
    Role,
    UserProfile,
)
from events.domain.errors import StoreTimeoutError
from events.domain.models import RegistrationEntry
from events.stores.interfaces import EventStore, IdentityProvider, UserDirectory

logger = logging.getLogger(__name__)


def _to_domain(row: models.Event) -> Event:
    return Event(
        id=EventId(row.id),
        name=row.name,
        description=row.description,
        location=row.location,
        date=row.date,
        capacity=Capacity(row.capacity),
        created_by=row.created_by,
        regions=frozenset(row.regions or ()),
        campuses=frozenset(row.campuses or ()),
        image_url=row.image_url or None,
        registered_members=tuple(
            MemberRegistration(
                member_id=m.member_id,
                status=RegistrationStatus(m.status),
                registration_date=m.registration_date,
            )
            for m in row.registered_members.all()
        ),
        guest_registrations=tuple(
            GuestRegistration(
                name=g.name,
                email=Email(g.email),
                phone=g.phone or None,
                status=RegistrationStatus(g.status),
                registration_date=g.registration_date,
            )
            for g in row.guest_registrations.all()
        ),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _details(event: Event) -> dict:
    return {
        "name": event.name,
        "description": event.description,
        "location": event.location,
        "date": event.date,
        "capacity": event.capacity.value,
        "regions": sorted(event.regions),
        "campuses": sorted(event.campuses),
        "image_url": event.image_url,
    }


class DjangoEventStore(EventStore):
    """PostgreSQL-backed event store using Django ORM."""

    def _queryset(self):
        return models.Event.objects.prefetch_related(
            Prefetch("registered_members", queryset=models.MemberRegistration.objects.order_by("id")),
            Prefetch("guest_registrations", queryset=models.GuestRegistration.objects.order_by("id")),
        )

    def list_events(self) -> list[Event]:
        try:
            return [_to_domain(row) for row in self._queryset().order_by("date")]
        except OperationalError as exc:
            raise StoreTimeoutError() from exc

    def get_event(self, event_id: EventId) -> Event | None:
        try:
            row = self._queryset().filter(pk=event_id.value).first()
        except OperationalError as exc:
            raise StoreTimeoutError() from exc
        return _to_domain(row) if row is not None else None

    def add_event(self, event: Event) -> Event:
        try:
            row = models.Event.objects.create(
                id=event.id.value,
                created_by=event.created_by,
                version=0,
                **_details(event),
            )
        except OperationalError as exc:
            raise StoreTimeoutError() from exc
        transaction.on_commit(cache.invalidate_public_events)
        return _to_domain(row)

    def update_event(
        self,
        event: Event,
        expected_version: int,
        changes: Iterable[RegistrationEntry] = (),
    ) -> bool:
        return self._conditional_write(
            event.id, expected_version, changes, **_details(event)
        )

    def apply_registration_changes(
        self,
        event_id: EventId,
        expected_version: int,
        changes: Iterable[RegistrationEntry],
    ) -> bool:
        return self._conditional_write(event_id, expected_version, changes)

    def delete_event(self, event_id: EventId) -> bool:
        try:
            deleted, _ = models.Event.objects.filter(pk=event_id.value).delete()
        except OperationalError as exc:
            raise StoreTimeoutError() from exc
        if deleted:
            transaction.on_commit(cache.invalidate_public_events)
        return bool(deleted)

    def _conditional_write(
        self,
        event_id: EventId,
        expected_version: int,
        changes: Iterable[RegistrationEntry],
        **fields,
    ) -> bool:
        try:
            with transaction.atomic():
                matched = models.Event.objects.filter(
                    pk=event_id.value, version=expected_version
                ).update(version=F("version") + 1, updated_at=timezone.now(), **fields)
                if not matched:
                    return False
                for change in changes:
                    self._upsert(event_id, change)
        except OperationalError as exc:
            raise StoreTimeoutError() from exc
        if fields:
            transaction.on_commit(cache.invalidate_public_events)
        return True

    def _upsert(self, event_id: EventId, entry: RegistrationEntry) -> None:
        if isinstance(entry, MemberRegistration):
            models.MemberRegistration.objects.update_or_create(
                event_id=event_id.value,
                member_id=entry.member_id,
                defaults={
                    "status": entry.status.value,
                    "registration_date": entry.registration_date,
                },
            )
        elif isinstance(entry, GuestRegistration):
            updated = (
                models.GuestRegistration.objects.filter(
                    event_id=event_id.value, email__iexact=entry.email.value
                )
                .update(
                    status=entry.status.value,
                    registration_date=entry.registration_date,
                )
            )
            if not updated:
                models.GuestRegistration.objects.create(
                    event_id=event_id.value,
                    name=entry.name,
                    email=entry.email.value,
                    phone=entry.phone or "",
                    status=entry.status.value,
                    registration_date=entry.registration_date,
                )
        else:
            raise TypeError(f"Unsupported registration entry: {entry!r}")


class DjangoUserDirectory(UserDirectory):
    """Directory backed by ``Membership`` rows."""

    def get_eligibility(self, user_id: str) -> Eligibility:
        try:
            membership = models.Membership.objects.filter(user_id=user_id).first()
        except (ValueError, TypeError):
            membership = None
        if membership is None:
            return Eligibility(region=None, campus=None)
        return Eligibility(
            region=membership.region or None,
            campus=membership.campus or None,
        )

    def list_all_regions(self) -> list[str]:
        return list(
            models.Membership.objects.exclude(region="")
            .order_by("region")
            .values_list("region", flat=True)
            .distinct()
        )

    def list_all_campuses(self) -> list[str]:
        return list(
            models.Membership.objects.exclude(campus="")
            .order_by("campus")
            .values_list("campus", flat=True)
            .distinct()
        )

    def list_admin_ids(self) -> set[str]:
        admin_ids = {
            str(pk)
            for pk in models.Membership.objects.filter(
                role=models.Membership.Role.ADMIN
            ).values_list("user_id", flat=True)
        }
        admin_ids |= {
            str(pk)
            for pk in get_user_model().objects.filter(is_superuser=True).values_list("pk", flat=True)
        }
        return admin_ids

    def describe(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        pks = [int(uid) for uid in user_ids if str(uid).isdigit()]
        users = get_user_model().objects.filter(pk__in=pks).select_related("membership")
        profiles = {}
        for user in users:
            membership = getattr(user, "membership", None)
            if membership is not None:
                role = Role(membership.role)
            else:
                role = Role.ADMIN if user.is_superuser else None
            profiles[str(user.pk)] = UserProfile(
                user_id=str(user.pk),
                name=user.get_full_name() or user.get_username(),
                email=user.email,
                role=role,
                region=getattr(membership, "region", "") or None,
                campus=getattr(membership, "campus", "") or None,
            )
        return profiles


class DjangoIdentityProvider(IdentityProvider):
    """Resolves the DRF-authenticated ``request.user``.

    Superusers without a membership act as Admins; any other user without
    one is treated as anonymous.
    """

    def resolve(self, principal) -> Caller | AnonymousCaller:
        if principal is None or not principal.is_authenticated:
            return ANONYMOUS
        try:
            membership = principal.membership
        except models.Membership.DoesNotExist:
            if principal.is_superuser:
                return Caller(user_id=str(principal.pk), role=Role.ADMIN)
            logger.warning("User %s has no membership record", principal.pk)
            return ANONYMOUS
        return Caller(
            user_id=str(principal.pk),
            role=Role(membership.role),
            region=membership.region or None,
            campus=membership.campus or None,
        )
