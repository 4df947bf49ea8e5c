"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import logging

from django.conf import settings
from django.core.cache import cache
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from events.cache import PUBLIC_EVENTS_KEY
from events.domain.errors import DomainError, ErrorCode
from events.handlers.serializers import (
    EventInputSerializer,
    EventSerializer,
    GuestRegistrationInputSerializer,
    ManagedEventSerializer,
    PublicEventSerializer,
    RegistrationResultSerializer,
)
from events.services.deadline import Deadline
from events.services.event_service import EventService
from events.stores.django_store import (
    DjangoEventStore,
    DjangoIdentityProvider,
    DjangoUserDirectory,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorCode.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_EVENT_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_ELIGIBLE: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_REGISTERED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SERVER_BUSY: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


def build_service() -> EventService:
    config = settings.EVENTS
    return EventService(
        DjangoEventStore(),
        DjangoUserDirectory(),
        max_retries=config["MAX_WRITE_RETRIES"],
        backoff_seconds=config["RETRY_BACKOFF_SECONDS"],
        timeout_seconds=config["REQUEST_TIMEOUT_SECONDS"],
    )


def error_response(error: DomainError) -> Response:
    body = {"code": error.code.value, "message": error.message}
    if error.details:
        body["details"] = error.details
    return Response({"error": body}, status=ERROR_STATUS[error.code])


def validation_response(errors) -> Response:
    return Response(
        {
            "error": {
                "code": ErrorCode.VALIDATION_FAILED.value,
                "message": "Invalid input",
                "details": errors,
            }
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


class ServiceView(APIView):
    """Resolves the caller and a request deadline, and maps domain errors."""

    identity_provider = DjangoIdentityProvider()

    def initial(self, request: Request, *args, **kwargs) -> None:
        super().initial(request, *args, **kwargs)
        self.service = build_service()
        self.deadline = Deadline.after(settings.EVENTS["REQUEST_TIMEOUT_SECONDS"])

    def caller(self, request: Request):
        return self.identity_provider.resolve(request.user)

    def event_data(self, caller, event) -> dict:
        attendance = self.service.get_attendance(caller, event)
        if attendance is None:
            return EventSerializer(event).data
        return ManagedEventSerializer(event, context={"attendance": attendance}).data

    def handle_exception(self, exc: Exception) -> Response:
        if isinstance(exc, DomainError):
            return error_response(exc)
        if isinstance(exc, APIException):
            return super().handle_exception(exc)
        logger.exception("Unhandled error in %s", type(self).__name__)
        return Response(
            {"error": {"code": "INTERNAL_ERROR", "message": "Something went wrong"}},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class EventListView(ServiceView):
    """Handler for GET/POST /api/events"""

    def get(self, request: Request) -> Response:
        events = self.service.list_events(
            self.caller(request), when=request.query_params.get("when") or None
        )
        return Response(
            {"count": len(events), "results": EventSerializer(events, many=True).data}
        )

    def post(self, request: Request) -> Response:
        serializer = EventInputSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_response(serializer.errors)
        caller = self.caller(request)
        event = self.service.create_event(caller, serializer.to_domain(), deadline=self.deadline)
        return Response(self.event_data(caller, event), status=status.HTTP_201_CREATED)


class EventDetailView(ServiceView):
    """Handler for GET/PUT/DELETE /api/events/{event_id}"""

    def get(self, request: Request, event_id: str) -> Response:
        caller = self.caller(request)
        event = self.service.get_event(caller, event_id)
        return Response(self.event_data(caller, event))

    def put(self, request: Request, event_id: str) -> Response:
        serializer = EventInputSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_response(serializer.errors)
        caller = self.caller(request)
        event = self.service.update_event(
            caller, event_id, serializer.to_domain(), deadline=self.deadline
        )
        return Response(self.event_data(caller, event))

    def delete(self, request: Request, event_id: str) -> Response:
        self.service.delete_event(self.caller(request), event_id, deadline=self.deadline)
        return Response(status=status.HTTP_204_NO_CONTENT)


class RegisterView(ServiceView):
    """Handler for POST /api/events/{event_id}/register"""

    def post(self, request: Request, event_id: str) -> Response:
        result = self.service.register_member(
            self.caller(request), event_id, deadline=self.deadline
        )
        return Response(RegistrationResultSerializer(result).data)


class CancelRegistrationView(ServiceView):
    """Handler for PUT /api/events/{event_id}/cancel"""

    def put(self, request: Request, event_id: str) -> Response:
        self.service.cancel_registration(
            self.caller(request), event_id, deadline=self.deadline
        )
        return Response({"message": "Registration cancelled successfully"})


class GuestRegisterView(ServiceView):
    """Handler for POST /api/events/{event_id}/guest-register"""

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request: Request, event_id: str) -> Response:
        serializer = GuestRegistrationInputSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_response(serializer.errors)
        data = serializer.validated_data
        result = self.service.register_guest(
            event_id,
            name=data["name"],
            email=data["email"],
            phone=data.get("phone") or None,
            deadline=self.deadline,
        )
        return Response(RegistrationResultSerializer(result).data)


class PublicEventListView(ServiceView):
    """Handler for GET /api/public/events"""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        payload = cache.get(PUBLIC_EVENTS_KEY)
        if payload is None:
            events = self.service.list_public_events()
            payload = {
                "count": len(events),
                "results": list(PublicEventSerializer(events, many=True).data),
            }
            cache.set(
                PUBLIC_EVENTS_KEY, payload, timeout=settings.EVENTS["PUBLIC_EVENTS_CACHE_TTL"]
            )
        else:
            logger.debug("Serving public events from cache")
        return Response(payload)
