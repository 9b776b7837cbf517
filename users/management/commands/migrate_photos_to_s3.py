"""
Management command: migrate_photos_to_s3
----------------------------------------

Move every locally stored photo (references under /uploads/) to S3 and
point the rows at the new keys. Run once when switching PHOTO_STORAGE_MODE
from "local" to "s3".

Behavior:
    - Rows whose local file is missing are reported and skipped.
    - One failure does not stop the batch; the summary counts them.
    - Local files are kept unless --delete-local is given.

Usage:
    python manage.py migrate_photos_to_s3 [--delete-local]
"""

import logging

from django.core.management.base import BaseCommand

from users import renumbering
from users.exceptions import NotFoundError, PhotoStorageError, UserStoreError
from users.models import User
from users.photos import copy_photo, get_photo_store

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Copy all local user photos to S3 and update their references."

    def add_arguments(self, parser):
        parser.add_argument(
            "--delete-local", action="store_true",
            help="Remove each local file once its row points at S3.",
        )

    def handle(self, *args, **opts):
        local = get_photo_store("local")
        s3 = get_photo_store("s3")
        rows = list(
            User.objects.filter(photo__startswith=f"/{local.prefix}/")
            .order_by("id")
            .values_list("id", "photo")
        )
        self.stdout.write(f"Found {len(rows)} user(s) with local photos.")

        migrated = skipped = failed = 0
        for user_id, reference in rows:
            if not local.exists(reference):
                skipped += 1
                self.stdout.write(self.style.WARNING(f"  {user_id}: missing {reference}, skipped"))
                continue
            try:
                new_reference = copy_photo(reference, s3)
                renumbering.assign_photo(user_id, new_reference)
            except (PhotoStorageError, NotFoundError, UserStoreError) as exc:
                failed += 1
                logger.warning("Photo migration failed for user %s: %s", user_id, exc)
                self.stdout.write(self.style.ERROR(f"  {user_id}: {exc}"))
                continue
            migrated += 1
            self.stdout.write(f"  {user_id}: {reference} -> {new_reference}")
            if opts["delete_local"]:
                local.discard(reference)

        summary = f"Migrated {migrated}, skipped {skipped}, failed {failed}."
        self.stdout.write(self.style.SUCCESS(summary) if not failed else self.style.WARNING(summary))
