"""
Management command: cleanup_photos
----------------------------------

Delete image files under MEDIA_ROOT/uploads/ that no user row references
(left behind by failed uploads or by migrations run without --delete-local).

Usage:
    python manage.py cleanup_photos [--dry-run]
"""

from django.core.management.base import BaseCommand

from users.models import User
from users.photos import get_photo_store


class Command(BaseCommand):
    help = "Remove local photo files that no user references."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run", action="store_true",
            help="List what would be removed without deleting anything.",
        )

    def handle(self, *args, **opts):
        store = get_photo_store("local")
        referenced = set(User.objects.exclude(photo__isnull=True).values_list("photo", flat=True))
        orphans = [ref for ref in store.list_references() if ref not in referenced]

        freed = 0
        for reference in orphans:
            size = store.size(reference)
            if opts["dry_run"]:
                self.stdout.write(f"  would remove {reference} ({_fmt_bytes(size)})")
            elif store.discard(reference):
                self.stdout.write(f"  removed {reference} ({_fmt_bytes(size)})")
            else:
                continue
            freed += size

        verb = "Would free" if opts["dry_run"] else "Freed"
        self.stdout.write(self.style.SUCCESS(
            f"{len(orphans)} unreferenced file(s). {verb} {_fmt_bytes(freed)}."
        ))


def _fmt_bytes(size):
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
