"""
models.py — The User record managed by Roster


Purpose
===============================================================================
One table, one entity: a person with a name, a unique email, an optional age
and an optional photo reference.

Ids are dense
- Live ids always form 1..N ordered by (created_at, id). Inserts and deletes
  go through users.renumbering, which rewrites the primary keys after every
  mutation. Never cache a User id across a create/delete.

Timestamps
- created_at / updated_at use `default=timezone.now` rather than
  auto_now_add / auto_now: the renumbering rewrite re-inserts rows with their
  original timestamps, and auto_now* fields would overwrite them on insert.
- updated_at is refreshed in save() for existing rows only.

Photo
- `photo` is an opaque reference owned by users.photos (local path, S3 key
  path, or a legacy full S3 URL). The model never interprets it.
"""

from django.core.validators import MaxValueValidator, MinValueValidator, MinLengthValidator
from django.db import models
from django.utils import timezone


NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
AGE_MIN = 1
AGE_MAX = 150


class User(models.Model):
    name = models.CharField(
        max_length=NAME_MAX_LENGTH,
        validators=[MinLengthValidator(NAME_MIN_LENGTH, message="Name must be 2-100 characters long.")],
        help_text="Display name (2-100 characters).",
    )
    email = models.EmailField(
        max_length=255, unique=True,
        error_messages={"unique": "Email already exists.", "invalid": "Email is not valid."},
        help_text="Unique email address (stored lowercase).",
    )
    age = models.IntegerField(
        null=True, blank=True,
        validators=[
            MinValueValidator(AGE_MIN, message="Age must be at least 1."),
            MaxValueValidator(AGE_MAX, message="Age must not exceed 150."),
        ],
        help_text="Optional age (1-150).",
    )
    photo = models.CharField(
        max_length=500, null=True, blank=True,
        help_text="Photo reference (/uploads/..., /user-photos/... or a legacy S3 URL).",
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True, editable=False)
    updated_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        ordering = ["id"]
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.id}. {self.name} <{self.email}>"

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        if not self._state.adding:
            self.updated_at = timezone.now()
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = set(update_fields) | {"updated_at"}
        super().save(*args, **kwargs)

    def as_record(self) -> dict:
        """Plain-dict snapshot of every column (used for delete responses and renumbering)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "age": self.age,
            "photo": self.photo,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
