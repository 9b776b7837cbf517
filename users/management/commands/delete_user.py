from django.core.management.base import BaseCommand, CommandError

from users import renumbering
from users.exceptions import NotFoundError, RenumberFailure


class Command(BaseCommand):
    help = "Delete one user by id and renumber the rest."

    def add_arguments(self, parser):
        parser.add_argument("user_id", type=int, help="Current id of the user to delete")

    def handle(self, *args, **opts):
        try:
            result = renumbering.delete_with_renumber(opts["user_id"])
        except (NotFoundError, RenumberFailure) as exc:
            raise CommandError(exc.message) from exc

        deleted = result.deleted
        self.stdout.write(f"Deleted: {deleted['id']}. {deleted['name']} <{deleted['email']}>")
        self.stdout.write(self.style.SUCCESS(f"{result.new_count} user(s) remain, ids 1..{result.new_count}."))
