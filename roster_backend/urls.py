"""
urls.py — Root URL configuration for Roster Backend

Purpose
===============================================================================
- Wire Django admin and the Users API router.
- GET / answers with a small service-info payload.
- /api/upload-info/ reports the active photo storage backend.
- Serve media files (local photo uploads) in development.
- Provide interactive API docs:
    * /api/docs/   → Swagger UI
    * /api/schema/ → OpenAPI JSON (machine-readable)

Notes
- UserViewSet also registers the extra routes /api/users/reorder/,
  /api/users/id-stats/ and /api/users/{id}/upload-photo/ through @action.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from rest_framework import permissions, routers

from users import views

# ----------------------------------------------------------------------------- #
# DRF Routers (ViewSets → automatic CRUD endpoints)                             #
# ----------------------------------------------------------------------------- #
router = routers.DefaultRouter()
router.register(r"users", views.UserViewSet, basename="user")

# ----------------------------------------------------------------------------- #
# API Docs (Swagger/OpenAPI via drf-yasg)                                       #
# ----------------------------------------------------------------------------- #
# /api/docs/   → Swagger UI
# /api/schema/ → OpenAPI JSON

from drf_yasg.views import get_schema_view
from drf_yasg import openapi

schema_view = get_schema_view(
    openapi.Info(
        title="Roster API",
        default_version="v1",
        description=(
            "Interactive API documentation for Roster. "
            "User ids are dense: after every create or delete they are renumbered "
            "1..N by creation time. "
            "Key endpoints: /api/users/, /api/users/reorder/, /api/users/id-stats/, "
            "/api/users/{id}/upload-photo/, /api/upload-info/"
        ),
    ),
    public=True,
    permission_classes=[permissions.AllowAny],
)

# ----------------------------------------------------------------------------- #
# URL Patterns                                                                  #
# ----------------------------------------------------------------------------- #
urlpatterns = [
    path("", views.service_info, name="service-info"),

    path("admin/", admin.site.urls),

    # API (ViewSets)
    path("api/", include(router.urls)),
    path("api/upload-info/", views.upload_info, name="upload-info"),

    # API docs
    path("api/docs/",   schema_view.with_ui("swagger", cache_timeout=0), name="api-docs-swagger"),
    path("api/schema/", schema_view.without_ui(cache_timeout=0),         name="openapi-schema"),
]

# Dev-only media serving (local photo uploads under /media/uploads/)
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
