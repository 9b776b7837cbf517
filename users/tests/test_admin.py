from django.contrib.auth import get_user_model
from django.test import TestCase

from users import renumbering
from users.models import User

CHANGELIST = "/admin/users/user/"


class UserAdminTests(TestCase):
    """
    Admin pages go through the same service as the API:
      - add lands the new row on id N, change keeps ids
      - single and bulk delete renumber (bulk: once, with pre-delete ids)
      - "Renumber user IDs" action closes gaps
    """

    def setUp(self):
        staff = get_user_model().objects.create_superuser("admin", "admin@example.com", "pass")
        self.client.force_login(staff)

    def create(self, name):
        return renumbering.create_with_renumber({"name": name, "email": f"{name.lower()}@example.com"})

    def ids(self):
        return list(User.objects.order_by("id").values_list("id", flat=True))

    def test_changelist_renders(self):
        self.create("Alice")
        r = self.client.get(CHANGELIST)
        self.assertEqual(r.status_code, 200)
        self.assertContains(r, "alice@example.com")

    def test_add_creates_through_renumbering(self):
        self.create("Alice")
        r = self.client.post(
            f"{CHANGELIST}add/",
            {"name": "Bob", "email": "BOB@Example.com", "age": "40", "photo": ""},
        )
        self.assertEqual(r.status_code, 302)
        self.assertEqual(User.objects.get(id=2).email, "bob@example.com")
        self.assertEqual(self.ids(), [1, 2])

    def test_add_with_photo_reference(self):
        r = self.client.post(
            f"{CHANGELIST}add/",
            {"name": "Bob", "email": "bob@example.com", "age": "", "photo": "/uploads/bob.png"},
        )
        self.assertEqual(r.status_code, 302)
        self.assertEqual(User.objects.get(id=1).photo, "/uploads/bob.png")

    def test_add_duplicate_email_is_a_form_error(self):
        self.create("Alice")
        r = self.client.post(
            f"{CHANGELIST}add/",
            {"name": "Alicia", "email": "ALICE@example.com", "age": "", "photo": ""},
        )
        self.assertEqual(r.status_code, 200)
        self.assertContains(r, "Email already exists.")
        self.assertEqual(User.objects.count(), 1)

    def test_change_updates_in_place(self):
        self.create("Alice")
        self.create("Bob")
        r = self.client.post(
            f"{CHANGELIST}2/change/",
            {"name": "Robert", "email": "bob@example.com", "age": "41", "photo": ""},
        )
        self.assertEqual(r.status_code, 302)
        bob = User.objects.get(id=2)
        self.assertEqual((bob.name, bob.age), ("Robert", 41))
        self.assertEqual(self.ids(), [1, 2])

    def test_delete_view_renumbers(self):
        for name in ("Alice", "Bob", "Carol"):
            self.create(name)
        r = self.client.post(f"{CHANGELIST}1/delete/", {"post": "yes"})
        self.assertEqual(r.status_code, 302)
        self.assertEqual(self.ids(), [1, 2])
        self.assertEqual(User.objects.get(id=1).email, "bob@example.com")

    def test_bulk_delete_renumbers_once_with_selected_ids(self):
        for name in ("Alice", "Bob", "Carol", "Dave", "Erin"):
            self.create(name)
        r = self.client.post(
            CHANGELIST,
            {"action": "delete_selected", "_selected_action": ["2", "4"], "post": "yes"},
        )
        self.assertEqual(r.status_code, 302)
        self.assertEqual(
            list(User.objects.order_by("id").values_list("id", "email")),
            [(1, "alice@example.com"), (2, "carol@example.com"), (3, "erin@example.com")],
        )

    def test_renumber_action(self):
        User.objects.create(id=3, name="Carol", email="carol@example.com")
        User.objects.create(id=8, name="Dave", email="dave@example.com")
        r = self.client.post(
            CHANGELIST, {"action": "renumber_ids", "_selected_action": ["3"]}, follow=True
        )
        self.assertEqual(r.status_code, 200)
        self.assertContains(r, "User ids renumbered 1..2.")
        self.assertEqual(self.ids(), [1, 2])
