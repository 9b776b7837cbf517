from django.core.management.base import BaseCommand

from users.models import User


class Command(BaseCommand):
    help = "Print every user ordered by id."

    def handle(self, *args, **options):
        users = list(User.objects.order_by("id"))
        if not users:
            self.stdout.write("No users.")
            return

        for user in users:
            age = user.age if user.age is not None else "-"
            photo = user.photo or "-"
            self.stdout.write(
                f"{user.id:>5}  {user.name:<30} {user.email:<35} age={age:<4} "
                f"photo={photo}  created={user.created_at:%Y-%m-%d %H:%M:%S}"
            )
        self.stdout.write(self.style.SUCCESS(f"{len(users)} user(s)."))
