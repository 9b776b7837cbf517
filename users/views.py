"""
users/views.py — DRF ViewSet & service endpoints for Roster

Purpose
===============================================================================
Public CRUD API over the User table, plus the id-maintenance and photo
endpoints.

Dense ids
- Creates and deletes go through users.renumbering, which rewrites every
  primary key so ids stay 1..N by creation time. A client must not reuse an id
  it read before its own (or anyone else's) create/delete.
- DELETE therefore answers 200 with the removed row and the new count instead
  of 204, so the client knows how many rows remain.

Highlights
- Filtering (?email, ?min_age, ?max_age, ?has_photo), search (?search= on
  name/email) and ordering (?ordering=) for list.
- POST /api/users/reorder/      → manual, idempotent renumber.
- GET  /api/users/id-stats/     → id report (gaps, expected vs actual).
- POST /api/users/{id}/upload-photo/ → store image, swap reference, remove old.
- Domain errors (users.exceptions) are raised as-is and rendered by the
  project's DRF exception handler.

API Docs (Swagger / drf-yasg)
===============================================================================
Request bodies are documented with UserWriteSerializer / PhotoUploadSerializer;
the view itself never validates through them.
"""

from dataclasses import asdict

from django.conf import settings
from django.http import Http404
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle, ScopedRateThrottle

from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema

from . import renumbering
from .exceptions import NotFoundError
from .filters import UserFilter
from .models import User
from .photos import get_photo_store
from .serializers import (
    DeleteResultSerializer,
    IdStatsSerializer,
    PhotoUploadSerializer,
    UserSerializer,
    UserWriteSerializer,
)



def _payload(data, partial):
    """Editable fields from request.data. PUT sends every field (missing → None)."""
    if partial:
        return {name: data.get(name) for name in renumbering.EDITABLE_FIELDS if name in data}
    return {name: data.get(name) for name in renumbering.EDITABLE_FIELDS}


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------
class UserViewSet(viewsets.ModelViewSet):
    """
    Users API
    - Filtering:   ?email=<addr>&min_age=<int>&max_age=<int>&has_photo=<bool>
    - Search:      ?search=<substring> (name, email)
    - Ordering:    ?ordering=id | name | email | age | created_at (prefix - for desc)
    """
    queryset = User.objects.all()
    serializer_class = UserSerializer
    permission_classes = [permissions.AllowAny]
    filterset_class = UserFilter
    search_fields = ["name", "email"]
    ordering_fields = ["id", "name", "email", "age", "created_at"]
    ordering = ["id"]
    lookup_value_regex = r"\d+"
    throttle_scope = None  # set per action (upload-photo uses "uploads")

    def get_serializer_context(self):
        ctx = super().get_serializer_context()
        ctx["photo_store"] = get_photo_store()
        return ctx

    def get_object(self):
        try:
            return super().get_object()
        except Http404:
            raise NotFoundError(self.kwargs.get(self.lookup_field))

    _resp_list_ok = openapi.Response("OK", UserSerializer(many=True))
    _resp_item_ok = openapi.Response("OK", UserSerializer())
    _resp_created = openapi.Response("Created", UserSerializer())

    @swagger_auto_schema(
        tags=["Users"],
        operation_description=(
            "List users ordered by id (paginated).\n\n"
            "• Filtering: `?email=` (case-insensitive) & `min_age` & `max_age` & `has_photo=true|false`\n"
            "• Search: `?search=` (name, email)\n"
            "• Ordering: `?ordering=id | -id | name | email | age | created_at`"
        ),
        responses={200: _resp_list_ok},
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    @swagger_auto_schema(
        tags=["Users"],
        operation_description="Retrieve a user by id. Ids change after any create/delete.",
        responses={200: _resp_item_ok, 404: "Not Found"},
    )
    def retrieve(self, request, *args, **kwargs):
        return super().retrieve(request, *args, **kwargs)

    @swagger_auto_schema(
        tags=["Users"],
        operation_description=(
            "Create a user. The table is renumbered in the same transaction, so the "
            "new user gets id N (the newest row) and every id stays 1..N.\n\n"
            "Errors: 400 with `errors` per field (validation or duplicate email)."
        ),
        request_body=UserWriteSerializer,
        responses={201: _resp_created, 400: "Bad Request", 500: "Renumbering failed (rolled back)"},
    )
    def create(self, request, *args, **kwargs):
        user = renumbering.create_with_renumber(_payload(request.data, partial=False))
        ser = self.get_serializer(user)
        return Response(ser.data, status=status.HTTP_201_CREATED)

    @swagger_auto_schema(
        tags=["Users"],
        operation_description="Replace name, email and age (PUT). Ids are not renumbered.",
        request_body=UserWriteSerializer,
        responses={200: _resp_item_ok, 400: "Bad Request", 404: "Not Found"},
    )
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        user = renumbering.update_user(kwargs[self.lookup_field], _payload(request.data, partial))
        return Response(self.get_serializer(user).data, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        tags=["Users"],
        operation_description="Update some of name, email, age (PATCH). Ids are not renumbered.",
        request_body=UserWriteSerializer,
        responses={200: _resp_item_ok, 400: "Bad Request", 404: "Not Found"},
    )
    def partial_update(self, request, *args, **kwargs):
        return super().partial_update(request, *args, **kwargs)

    @swagger_auto_schema(
        tags=["Users"],
        operation_description=(
            "Delete a user, then renumber the rest so ids stay 1..N.\n\n"
            "Returns the deleted row (with its former id) and the new user count."
        ),
        responses={200: openapi.Response("OK", DeleteResultSerializer()), 404: "Not Found"},
    )
    def destroy(self, request, *args, **kwargs):
        result = renumbering.delete_with_renumber(kwargs[self.lookup_field])
        ser = DeleteResultSerializer(
            {"deleted": User(**result.deleted), "new_count": result.new_count},
            context=self.get_serializer_context(),
        )
        return Response(ser.data, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        method="post",
        tags=["Users"],
        operation_description="Renumber all user ids to 1..N by creation time. Safe to repeat.",
        request_body=openapi.Schema(type=openapi.TYPE_OBJECT, properties={}),
        responses={
            200: openapi.Schema(
                type=openapi.TYPE_OBJECT,
                properties={
                    "detail": openapi.Schema(type=openapi.TYPE_STRING),
                    "new_count": openapi.Schema(type=openapi.TYPE_INTEGER),
                },
            ),
            500: "Renumbering failed (rolled back)",
        },
    )
    @action(detail=False, methods=["post"], url_path="reorder")
    def reorder(self, request):
        count = renumbering.renumber_all()
        return Response(
            {"detail": f"User ids renumbered 1..{count}.", "new_count": count},
            status=status.HTTP_200_OK,
        )

    @swagger_auto_schema(
        method="get",
        tags=["Users"],
        operation_description="Report current ids, the expected 1..N sequence, and any gaps.",
        responses={200: openapi.Response("OK", IdStatsSerializer())},
    )
    @action(detail=False, methods=["get"], url_path="id-stats", filter_backends=[], pagination_class=None)
    def id_stats(self, request):
        return Response(asdict(renumbering.id_stats()), status=status.HTTP_200_OK)

    @swagger_auto_schema(
        method="post",
        tags=["Users"],
        operation_description=(
            "Upload a photo for a user (multipart field `photo`). The previous photo, "
            "if any, is removed from storage after the new one is saved."
        ),
        request_body=PhotoUploadSerializer,
        responses={200: _resp_item_ok, 400: "Bad Request", 404: "Not Found", 502: "Photo storage unavailable"},
    )
    @action(
        detail=True,
        methods=["post"],
        url_path="upload-photo",
        parser_classes=[MultiPartParser, FormParser],
        throttle_classes=[AnonRateThrottle, ScopedRateThrottle],
        throttle_scope="uploads",
    )
    def upload_photo(self, request, pk=None):
        if not User.objects.filter(pk=pk).exists():
            raise NotFoundError(pk)

        store = get_photo_store()
        reference = store.put(request.FILES.get("photo"))
        try:
            user, previous = renumbering.assign_photo(pk, reference)
        except NotFoundError:
            # Deleted (or renumbered away) between the check and the update.
            store.discard(reference)
            raise

        if previous and previous != reference:
            store.discard(previous)

        ser = UserSerializer(user, context={"request": request, "photo_store": store})
        return Response(
            {
                "detail": "Photo uploaded.",
                "user": ser.data,
                "photo": {
                    "reference": reference,
                    "url": store.resolve_url(reference, request),
                    "mode": store.mode,
                },
            },
            status=status.HTTP_200_OK,
        )


# -----------------------------------------------------------------------------
# Service endpoints
# -----------------------------------------------------------------------------

@swagger_auto_schema(
    method="get",
    tags=["Service"],
    operation_description="Service name, main endpoints and the active photo storage mode.",
)
@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def service_info(request):
    """
    GET /
    Small landing payload so a bare GET on the host says what is here.
    """
    store = get_photo_store()
    data = {
        "name": "Roster API",
        "version": "1.0.0",
        "endpoints": {
            "users": "/api/users/",
            "reorder": "/api/users/reorder/",
            "id_stats": "/api/users/id-stats/",
            "upload_photo": "/api/users/{id}/upload-photo/",
            "upload_info": "/api/upload-info/",
            "docs": "/api/docs/",
        },
        "upload": {"mode": store.mode, "max_file_size": settings.PHOTO_MAX_UPLOAD_SIZE},
    }
    return Response(data, status=status.HTTP_200_OK)


@swagger_auto_schema(
    method="get",
    tags=["Service"],
    operation_description=(
        "Photo storage configuration: mode (local|s3), size limit, allowed types. "
        "In s3 mode also bucket, region and a connectivity status."
    ),
)
@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def upload_info(request):
    return Response(get_photo_store().describe(), status=status.HTTP_200_OK)
