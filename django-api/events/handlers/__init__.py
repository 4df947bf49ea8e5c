from events.handlers.views import (
    CancelRegistrationView,
    EventDetailView,
    EventListView,
    GuestRegisterView,
    PublicEventListView,
    RegisterView,
)

__all__ = [
    "CancelRegistrationView",
    "EventDetailView",
    "EventListView",
    "GuestRegisterView",
    "PublicEventListView",
    "RegisterView",
]
