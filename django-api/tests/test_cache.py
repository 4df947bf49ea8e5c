"""Tests for cache behavior.

Run with: pytest tests/test_cache.py -v
"""

from dataclasses import replace
from datetime import datetime, timezone

import pytest
from django.core.cache import cache

from events import models
from events.cache import PUBLIC_EVENTS_KEY
from events.domain import Capacity, MemberRegistration, RegistrationStatus
from events.stores.django_store import DjangoEventStore
from tests.helpers import make_event

FUTURE = datetime(2031, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def admin_user(django_user_model):
    user = django_user_model.objects.create_user(username="admin", password="pw")
    models.Membership.objects.create(user=user, role="Admin")
    return user


def orm_event(admin_user, name="Open day") -> models.Event:
    return models.Event.objects.create(
        name=name,
        description="d",
        location="l",
        date=FUTURE,
        capacity=10,
        created_by=str(admin_user.pk),
    )


@pytest.mark.django_db
class TestPublicEventsCache:
    """Tests for caching of the public events listing."""

    def test_first_request_populates_cache(self, api_client, admin_user):
        orm_event(admin_user)
        response = api_client.get("/api/public/events")
        assert response.status_code == 200
        assert cache.get(PUBLIC_EVENTS_KEY)["count"] == 1

    def test_cached_response_is_served(self, api_client, admin_user):
        orm_event(admin_user)
        cache.set(PUBLIC_EVENTS_KEY, {"count": 0, "results": []})
        assert api_client.get("/api/public/events").data["count"] == 0


@pytest.mark.django_db
class TestCacheInvalidation:
    """Tests for cache invalidation on model changes."""

    def test_event_save_invalidates_public_cache(self, admin_user):
        cache.set(PUBLIC_EVENTS_KEY, {"count": 0, "results": []})
        orm_event(admin_user)
        assert cache.get(PUBLIC_EVENTS_KEY) is None

    def test_event_delete_invalidates_public_cache(self, admin_user):
        event = orm_event(admin_user)
        cache.set(PUBLIC_EVENTS_KEY, {"count": 1, "results": []})
        event.delete()
        assert cache.get(PUBLIC_EVENTS_KEY) is None

    def test_store_detail_update_invalidates_on_commit(
        self, admin_user, django_capture_on_commit_callbacks
    ):
        store = DjangoEventStore()
        event = store.add_event(make_event(created_by=str(admin_user.pk)))
        cache.set(PUBLIC_EVENTS_KEY, {"count": 1, "results": []})
        with django_capture_on_commit_callbacks(execute=True):
            store.update_event(replace(event, capacity=Capacity(9)), event.version)
        assert cache.get(PUBLIC_EVENTS_KEY) is None

    def test_registration_keeps_public_cache(
        self, admin_user, django_capture_on_commit_callbacks
    ):
        store = DjangoEventStore()
        event = store.add_event(make_event(created_by=str(admin_user.pk)))
        cache.set(PUBLIC_EVENTS_KEY, {"count": 1, "results": []})
        entry = MemberRegistration("m1", RegistrationStatus.CONFIRMED, FUTURE)
        with django_capture_on_commit_callbacks(execute=True):
            store.apply_registration_changes(event.id, event.version, [entry])
        assert cache.get(PUBLIC_EVENTS_KEY) == {"count": 1, "results": []}
