"""Django signals for cache invalidation.

Covers writes made outside the store, such as the admin site.
"""

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from events import cache
from events.models import Event


@receiver([post_save, post_delete], sender=Event)
def invalidate_event_cache(sender, instance, **kwargs):
    """Invalidate the public listing when an event is saved or deleted."""
    cache.invalidate_public_events()
