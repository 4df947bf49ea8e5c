"""Builders shared by the test modules."""

import itertools
import uuid
from datetime import datetime, timedelta, timezone

from events.domain import Caller, Capacity, Event, EventId, Role

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TickingClock:
    """Returns a strictly increasing time on every call."""

    def __init__(self, start: datetime = NOW, step: timedelta = timedelta(seconds=1)) -> None:
        self._counter = itertools.count()
        self._start = start
        self._step = step

    def __call__(self) -> datetime:
        return self._start + self._step * next(self._counter)


def make_event(**overrides) -> Event:
    fields = {
        "id": EventId(uuid.uuid4()),
        "name": "Spring retreat",
        "description": "Weekend retreat",
        "location": "Main hall",
        "date": NOW + timedelta(days=30),
        "capacity": Capacity(2),
        "created_by": "leader-1",
    }
    fields.update(overrides)
    return Event(**fields)


def member(user_id: str, region: str = "East", campus: str = "North Campus") -> Caller:
    return Caller(user_id=user_id, role=Role.MEMBER, region=region, campus=campus)
