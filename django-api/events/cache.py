"""Cache keys for the events module."""

from django.core.cache import cache

PUBLIC_EVENTS_KEY = "events:public"


def invalidate_public_events() -> None:
    cache.delete(PUBLIC_EVENTS_KEY)
