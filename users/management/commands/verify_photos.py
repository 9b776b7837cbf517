"""
Management command: verify_photos
---------------------------------

Check that every photo reference in the user table points at an object that
still exists, in whichever backend the reference belongs to (local uploads,
S3 keys, legacy full S3 URLs).

Usage:
    python manage.py verify_photos [--strict]

With --strict the command exits non-zero when anything is missing.
"""

from collections import Counter

from django.core.management.base import BaseCommand, CommandError

from users.exceptions import PhotoStorageError
from users.models import User
from users.photos import get_photo_store, reference_kind


class Command(BaseCommand):
    help = "Verify that every user photo reference points at a stored object."

    def add_arguments(self, parser):
        parser.add_argument(
            "--strict", action="store_true",
            help="Exit with an error when any photo is missing or unreadable.",
        )

    def handle(self, *args, **opts):
        rows = list(
            User.objects.exclude(photo__isnull=True).exclude(photo="")
            .order_by("id")
            .values_list("id", "photo")
        )
        stores = {}
        counts = Counter()

        for user_id, reference in rows:
            kind = reference_kind(reference)
            if kind == "unknown":
                counts["errors"] += 1
                self.stdout.write(self.style.ERROR(f"  {user_id}: unrecognised reference {reference}"))
                continue
            mode = "local" if kind == "local" else "s3"
            try:
                if mode not in stores:
                    stores[mode] = get_photo_store(mode)
                found = stores[mode].exists(reference)
            except PhotoStorageError as exc:
                counts["errors"] += 1
                self.stdout.write(self.style.ERROR(f"  {user_id}: {exc.message}"))
                continue
            if found:
                counts[f"{mode}_valid"] += 1
            else:
                counts[f"{mode}_invalid"] += 1
                self.stdout.write(self.style.WARNING(f"  {user_id}: missing in {mode} storage: {reference}"))

        valid = counts["local_valid"] + counts["s3_valid"]
        invalid = counts["local_invalid"] + counts["s3_invalid"]
        self.stdout.write(f"Checked {len(rows)} photo(s).")
        self.stdout.write(f"Local: {counts['local_valid']} ok, {counts['local_invalid']} missing")
        self.stdout.write(f"S3:    {counts['s3_valid']} ok, {counts['s3_invalid']} missing")
        self.stdout.write(f"Errors: {counts['errors']}")

        if invalid or counts["errors"]:
            message = f"{invalid} missing photo(s), {counts['errors']} error(s)."
            if opts["strict"]:
                raise CommandError(message)
            self.stdout.write(self.style.WARNING(message))
        else:
            self.stdout.write(self.style.SUCCESS(f"All {valid} photo(s) present."))
