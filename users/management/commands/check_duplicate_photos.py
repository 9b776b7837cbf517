"""
Management command: check_duplicate_photos
------------------------------------------

Report photo references shared by more than one user, the same file name
used under several references, and how references split between storage
kinds (local, S3 key, legacy S3 URL). Read-only.

Usage:
    python manage.py check_duplicate_photos
"""

import os
from collections import Counter, defaultdict
from urllib.parse import urlparse

from django.core.management.base import BaseCommand
from django.db.models import Count

from users.models import User
from users.photos import reference_kind


class Command(BaseCommand):
    help = "Find photo references shared between users and summarise storage usage."

    def handle(self, *args, **opts):
        with_photo = User.objects.exclude(photo__isnull=True).exclude(photo="")

        shared = (
            with_photo.values("photo")
            .annotate(users=Count("id"))
            .filter(users__gt=1)
            .order_by("-users", "photo")
        )
        self.stdout.write("Shared references:")
        for row in shared:
            ids = list(with_photo.filter(photo=row["photo"]).order_by("id").values_list("id", flat=True))
            self.stdout.write(f"  {row['photo']} used by {row['users']} users: {ids}")
        if not shared:
            self.stdout.write("  none")

        by_filename = defaultdict(set)
        kinds = Counter()
        for reference in with_photo.values_list("photo", flat=True):
            kinds[reference_kind(reference)] += 1
            by_filename[os.path.basename(urlparse(reference).path)].add(reference)

        self.stdout.write("Same file name under different references:")
        clashes = {name: refs for name, refs in by_filename.items() if len(refs) > 1}
        for name, refs in sorted(clashes.items()):
            self.stdout.write(f"  {name}: {', '.join(sorted(refs))}")
        if not clashes:
            self.stdout.write("  none")

        self.stdout.write("Storage kinds:")
        for kind in ("local", "s3", "legacy", "unknown"):
            self.stdout.write(f"  {kind:<8}{kinds[kind]}")
        self.stdout.write(f"Users without photo: {User.objects.count() - sum(kinds.values())}")

        if shared or clashes:
            self.stdout.write(self.style.WARNING(
                f"{len(shared)} shared reference(s), {len(clashes)} file name clash(es)."
            ))
        else:
            self.stdout.write(self.style.SUCCESS("No duplicate photos."))
