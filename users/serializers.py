"""
serializers.py — DRF serializers for Roster


Purpose
===============================================================================
Shape User rows as JSON. Input validation is NOT done here: create/update go
through users.renumbering so the API, admin and management commands share one
set of rules and one error format ({"detail", "errors": {field: [...]}}).

Principles
- Server-controlled fields are read-only: id (renumbered after every create /
  delete), photo (set only through the upload endpoint), timestamps.
- photo_url is derived from the photo reference by the active PhotoStore and
  is absolute when the serializer has a request in its context.
- UserWriteSerializer documents the request body for /api/docs. It is a
  ModelSerializer over the editable fields, so its bounds are read from the
  same model validators the service enforces and cannot drift from them.
"""

from rest_framework import serializers

from .models import User
from .photos import get_photo_store


class UserSerializer(serializers.ModelSerializer):
    photo_url = serializers.SerializerMethodField(read_only=True)

    def get_photo_url(self, obj):
        if not obj.photo:
            return None
        store = self.context.get("photo_store") or get_photo_store()
        return store.resolve_url(obj.photo, self.context.get("request"))

    class Meta:
        model = User
        fields = [
            "id",
            "name",
            "email",
            "age",
            "photo",
            "photo_url",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ("id", "photo", "created_at", "updated_at")


class UserWriteSerializer(serializers.ModelSerializer):
    """
    Request body for create/update. Bounds come from the model field validators
    (AGE_MIN..AGE_MAX, NAME_MIN_LENGTH..NAME_MAX_LENGTH), so docs and storage agree.
    """

    class Meta:
        model = User
        fields = ["name", "email", "age"]
        extra_kwargs = {
            # Uniqueness is case-insensitive and checked under the table lock.
            "email": {"validators": []},
        }


class PhotoUploadSerializer(serializers.Serializer):
    photo = serializers.ImageField(help_text="Image file (jpg, jpeg, png, gif, webp), max 5MB.")


class DeleteResultSerializer(serializers.Serializer):
    deleted = UserSerializer()
    new_count = serializers.IntegerField()


class IdStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    ids = serializers.ListField(child=serializers.IntegerField())
    expected = serializers.ListField(child=serializers.IntegerField())
    is_sequential = serializers.BooleanField()
    order_matches_created_at = serializers.BooleanField()
    gaps = serializers.ListField(child=serializers.IntegerField())
