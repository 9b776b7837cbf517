"""
Management command: migrate_user_photo
--------------------------------------

Move one user's photo to the other storage backend (local disk <-> S3).

Behavior:
    - Copies the bytes into the target backend under a new key, then swaps
      the reference on the row (assign_photo).
    - Legacy full S3 URLs count as S3.
    - The old object is kept unless --delete-source is given.
    - Nothing happens when the user has no photo or it is already on target.

Usage:
    python manage.py migrate_user_photo <user_id> --to local|s3 [--delete-source]
"""

from django.core.management.base import BaseCommand, CommandError

from users import renumbering
from users.exceptions import NotFoundError, PhotoStorageError, UserStoreError
from users.models import User
from users.photos import copy_photo, get_photo_store, reference_kind


class Command(BaseCommand):
    help = "Move one user's photo between local and S3 storage."

    def add_arguments(self, parser):
        parser.add_argument("user_id", type=int, help="Current id of the user")
        parser.add_argument("--to", dest="target", choices=["local", "s3"], required=True)
        parser.add_argument(
            "--delete-source", action="store_true",
            help="Remove the photo from the old backend after the row is updated.",
        )

    def handle(self, *args, **opts):
        user = User.objects.filter(pk=opts["user_id"]).first()
        if user is None:
            raise CommandError(f"User {opts['user_id']} not found.")
        if not user.photo:
            self.stdout.write(f"User {user.id} has no photo; nothing to migrate.")
            return

        kind = reference_kind(user.photo)
        if kind == "unknown":
            raise CommandError(f"Unrecognised photo reference: {user.photo}")
        current = "local" if kind == "local" else "s3"
        if current == opts["target"]:
            self.stdout.write(f"User {user.id} photo is already in {current} storage.")
            return

        target = get_photo_store(opts["target"])
        try:
            new_reference = copy_photo(user.photo, target)
            _, previous = renumbering.assign_photo(user.id, new_reference)
        except (PhotoStorageError, NotFoundError, UserStoreError) as exc:
            raise CommandError(exc.message) from exc

        self.stdout.write(f"User {user.id}: {previous} -> {new_reference}")
        if opts["delete_source"]:
            get_photo_store(current).discard(previous)
            self.stdout.write(f"Removed {previous} from {current} storage.")
        self.stdout.write(self.style.SUCCESS(f"Migrated photo of user {user.id} to {opts['target']}."))
