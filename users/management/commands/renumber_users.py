"""
Management command: renumber_users
----------------------------------

Rewrite user ids to 1..N ordered by creation time. Safe to run any number of
times; when ids are already dense nothing is rewritten.

Usage:
    python manage.py renumber_users
"""

from django.core.management.base import BaseCommand, CommandError

from users import renumbering
from users.exceptions import RenumberFailure
from users.models import User


class Command(BaseCommand):
    help = "Renumber user ids to 1..N by creation time (idempotent)."

    def handle(self, *args, **options):
        before = list(User.objects.order_by("id").values_list("id", flat=True))
        self.stdout.write(f"Before: {before}")

        try:
            count = renumbering.renumber_all()
        except RenumberFailure as exc:
            raise CommandError(exc.message) from exc

        after = list(User.objects.order_by("id").values_list("id", flat=True))
        self.stdout.write(f"After:  {after}")
        self.stdout.write(self.style.SUCCESS(f"Renumbered {count} user(s)."))
