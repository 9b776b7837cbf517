"""
Management command: user_id_stats
---------------------------------

Print the dense-id report: current ids, the expected 1..N sequence and any
gaps. With --strict the command fails (non-zero exit) when the ids are not
1..N in creation order, which makes it usable as a deploy/CI check.

Usage:
    python manage.py user_id_stats [--strict]
"""

from django.core.management.base import BaseCommand, CommandError

from users import renumbering


class Command(BaseCommand):
    help = "Report user id gaps and whether ids are 1..N by creation time."

    def add_arguments(self, parser):
        parser.add_argument(
            "--strict", action="store_true",
            help="Exit with an error when ids are not a dense 1..N sequence.",
        )

    def handle(self, *args, **opts):
        stats = renumbering.id_stats()

        self.stdout.write(f"Total users:  {stats.total}")
        self.stdout.write(f"Current ids:  {_fmt(stats.ids)}")
        self.stdout.write(f"Expected ids: {_fmt(stats.expected)}")
        self.stdout.write(f"Gaps:         {_fmt(stats.gaps) if stats.gaps else 'none'}")

        ok = stats.is_sequential and stats.order_matches_created_at
        if ok:
            self.stdout.write(self.style.SUCCESS("Ids are sequential."))
            return

        if not stats.order_matches_created_at:
            self.stdout.write(self.style.WARNING("Id order does not follow creation time."))
        message = "Ids are not sequential; run `manage.py renumber_users` to fix."
        if opts["strict"]:
            raise CommandError(message)
        self.stdout.write(self.style.WARNING(message))


def _fmt(ids, limit=50):
    text = ", ".join(str(i) for i in ids[:limit])
    if len(ids) > limit:
        text += f", ... (+{len(ids) - limit} more)"
    return f"[{text}]"
