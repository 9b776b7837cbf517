"""
Management command: seed_users
------------------------------

Purpose:
    Insert three sample users into an empty table so a fresh database has
    something to look at.

Behavior:
    - Idempotent: does nothing when any user already exists.
    - Each user goes through create_with_renumber, so ids come out 1, 2, 3.

Usage:
    python manage.py seed_users
"""

from django.core.management.base import BaseCommand

from users import renumbering
from users.models import User

SAMPLE_USERS = [
    {"name": "Nguyen Van A", "email": "a@example.com", "age": 25},
    {"name": "Tran Thi B", "email": "b@example.com", "age": 30},
    {"name": "Le Van C", "email": "c@example.com", "age": 28},
]


class Command(BaseCommand):
    help = "Insert sample users when the table is empty (idempotent)."

    def handle(self, *args, **options):
        existing = User.objects.count()
        if existing:
            self.stdout.write(f"Database already has {existing} user(s); nothing to seed.")
            return

        for fields in SAMPLE_USERS:
            user = renumbering.create_with_renumber(fields)
            self.stdout.write(f"  {user.id}. {user.name} <{user.email}>")

        self.stdout.write(self.style.SUCCESS(f"Seeded {len(SAMPLE_USERS)} sample user(s)."))
