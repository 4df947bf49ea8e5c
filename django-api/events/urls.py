from django.urls import path

from events.handlers import (
    CancelRegistrationView,
    EventDetailView,
    EventListView,
    GuestRegisterView,
    PublicEventListView,
    RegisterView,
)

urlpatterns = [
    path("public/events", PublicEventListView.as_view(), name="public-event-list"),
    path("events", EventListView.as_view(), name="event-list"),
    path("events/<str:event_id>", EventDetailView.as_view(), name="event-detail"),
    path("events/<str:event_id>/register", RegisterView.as_view(), name="event-register"),
    path(
        "events/<str:event_id>/cancel",
        CancelRegistrationView.as_view(),
        name="event-cancel",
    ),
    path(
        "events/<str:event_id>/guest-register",
        GuestRegisterView.as_view(),
        name="event-guest-register",
    ),
]
