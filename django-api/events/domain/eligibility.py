"""Region/campus targeting rules."""

from collections.abc import Iterable

from events.domain.models import AnonymousCaller, Caller, Event, TargetingSnapshot
from events.domain.value_objects import Role


def is_eligible(event: Event, region: str | None, campus: str | None) -> bool:
    """An empty set means unrestricted on that axis."""
    region_ok = not event.regions or region in event.regions
    campus_ok = not event.campuses or campus in event.campuses
    return region_ok and campus_ok


def is_visible_to(event: Event, caller: Caller | AnonymousCaller) -> bool:
    if caller.is_anonymous:
        return False
    if caller.role is Role.ADMIN:
        return True
    if caller.role is Role.LEADER and event.created_by == caller.user_id:
        return True
    return is_eligible(event, caller.region, caller.campus)


def can_manage(event: Event, caller: Caller | AnonymousCaller) -> bool:
    """Admins manage every event; leaders only the ones they created."""
    if caller.is_anonymous:
        return False
    if caller.role is Role.ADMIN:
        return True
    return caller.role is Role.LEADER and event.created_by == caller.user_id


def resolve_targeting(
    regions: Iterable[str] | None,
    campuses: Iterable[str] | None,
    known: TargetingSnapshot,
) -> tuple[frozenset[str], frozenset[str]]:
    """Fall back to every known region/campus when none were requested.

    The result is a snapshot: regions added to the directory later do not
    gain access to the event.
    """
    resolved_regions = frozenset(r for r in regions or () if r) or known.regions
    resolved_campuses = frozenset(c for c in campuses or () if c) or known.campuses
    return resolved_regions, resolved_campuses
