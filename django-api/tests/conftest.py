"""Pytest configuration and shared fixtures."""

import pytest
from rest_framework.test import APIClient

from events.domain import Caller, Role
from events.services.event_service import EventService
from events.stores.memory_store import InMemoryEventStore, InMemoryUserDirectory
from tests.helpers import TickingClock


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def directory() -> InMemoryUserDirectory:
    directory = InMemoryUserDirectory(admin_ids=["admin-1"])
    directory.add("leader-1", "East", "North Campus")
    directory.add("member-a", "East", "North Campus")
    directory.add("member-b", "East", "South Campus")
    directory.add("member-c", "East", "North Campus")
    directory.add("member-west", "West", "North Campus")
    return directory


@pytest.fixture
def service(store, directory) -> EventService:
    return EventService(
        store,
        directory,
        max_retries=3,
        backoff_seconds=0,
        clock=TickingClock(),
        sleep=lambda _: None,
    )


@pytest.fixture
def admin() -> Caller:
    return Caller(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def leader() -> Caller:
    return Caller(user_id="leader-1", role=Role.LEADER, region="East", campus="North Campus")
