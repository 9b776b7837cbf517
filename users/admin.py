"""
users/admin.py — Django Admin configuration for Roster

Purpose
===============================================================================
Make the Django admin useful for day-to-day QA of the user table, while keeping
the dense-id rule intact: every add and delete made here goes through
users.renumbering exactly like the API does.

How to read this file (plain English):
- list_display: columns shown in the admin list page (the big table).
- list_filter: right-hand sidebar filters to narrow results without typing.
- search_fields: text search across chosen fields (substring match).
- ordering: default sort order in the list page.

Highlights
- Add page      → create_with_renumber (the new row lands on id N).
- Change page   → update_user (+ assign_photo when the photo field changed).
- Delete (one)  → delete_with_renumber.
- Delete (bulk) → delete_many_with_renumber: lock, delete the selection,
                  renumber once.
- Action "Renumber user IDs" → renumber_all, reports the resulting count.
- Email is compared case-insensitively in the form so duplicates are caught
  as a form error instead of a failed save.
"""

from django import forms
from django.contrib import admin, messages

from . import renumbering
from .exceptions import RenumberFailure
from .models import User


class UserAdminForm(forms.ModelForm):
    class Meta:
        model = User
        fields = ("name", "email", "age", "photo")

    def clean_email(self):
        email = (self.cleaned_data.get("email") or "").strip().lower()
        qs = User.objects.filter(email__iexact=email)
        if self.instance.pk:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise forms.ValidationError("Email already exists.")
        return email


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    form = UserAdminForm
    list_display = ("id", "name", "email", "age", "has_photo", "created_at")
    list_filter = ("created_at",)
    search_fields = ("name", "email", "=id")
    ordering = ("id",)
    readonly_fields = ("id", "created_at", "updated_at")
    fields = ("id", "name", "email", "age", "photo", "created_at", "updated_at")
    actions = ["renumber_ids"]

    @admin.display(boolean=True, description="Photo")
    def has_photo(self, obj):
        return bool(obj.photo)

    def save_model(self, request, obj, form, change):
        if change:
            updated = renumbering.update_user(
                obj.pk, {"name": obj.name, "email": obj.email, "age": obj.age}
            )
            if "photo" in form.changed_data:
                updated, _ = renumbering.assign_photo(obj.pk, obj.photo or None)
            obj.updated_at = updated.updated_at
            return
        created = renumbering.create_with_renumber(
            {"name": obj.name, "email": obj.email, "age": obj.age}
        )
        if obj.photo:
            created, _ = renumbering.assign_photo(created.pk, obj.photo)
        # The add view redirects using obj.pk.
        obj.pk = created.pk
        obj.created_at = created.created_at
        obj.updated_at = created.updated_at

    def delete_model(self, request, obj):
        renumbering.delete_with_renumber(obj.pk)

    def delete_queryset(self, request, queryset):
        renumbering.delete_many_with_renumber(list(queryset.values_list("pk", flat=True)))

    @admin.action(description="Renumber user IDs")
    def renumber_ids(self, request, queryset):
        try:
            count = renumbering.renumber_all()
        except RenumberFailure as exc:
            self.message_user(request, exc.message, level=messages.ERROR)
            return
        self.message_user(request, f"User ids renumbered 1..{count}.", level=messages.SUCCESS)
