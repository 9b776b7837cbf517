from datetime import timedelta
from unittest import mock

from django.db import DatabaseError, OperationalError
from django.test import TestCase, override_settings
from django.utils import timezone

from users import renumbering
from users.exceptions import (
    DuplicateEmailError,
    NotFoundError,
    RenumberFailure,
    UserStoreError,
    ValidationError,
)
from users.models import User


class RenumberingTests(TestCase):
    """
    Service-level tests for users.renumbering:
      - ids are 1..N by creation time after every create / delete / renumber
      - renumber_all is idempotent and keeps every other column untouched
      - a storage fault mid-rewrite rolls back to the previous state
      - validation and duplicate-email rules on create / update
    """

    # -----------------------
    # Test helpers
    # -----------------------
    def setUp(self):
        self.T0 = timezone.now() - timedelta(days=1)

    def ids(self):
        return list(User.objects.order_by("id").values_list("id", flat=True))

    def emails_by_id(self):
        return list(User.objects.order_by("id").values_list("email", flat=True))

    def create(self, name, email=None, age=None):
        return renumbering.create_with_renumber(
            {"name": name, "email": email or f"{name.lower()}@example.com", "age": age}
        )

    def seed_raw(self, ids):
        """Insert rows with explicit (possibly gappy) ids, oldest first."""
        for i, pk in enumerate(ids):
            User.objects.create(
                id=pk,
                name=f"User {pk}",
                email=f"u{pk}@example.com",
                age=20 + i,
                created_at=self.T0 + timedelta(minutes=i),
                updated_at=self.T0 + timedelta(minutes=i),
            )

    def assertDense(self):
        rows = list(User.objects.order_by("created_at", "id").values_list("id", flat=True))
        self.assertEqual(rows, list(range(1, len(rows) + 1)))

    # -----------------------
    # renumber / renumber_all
    # -----------------------
    def test_renumber_empty_table(self):
        result = renumbering.renumber()
        self.assertEqual(result.new_count, 0)
        self.assertFalse(result.changed)
        self.assertTrue(result.success)

    def test_renumber_closes_gaps_in_creation_order(self):
        self.seed_raw([3, 8, 20])
        result = renumbering.renumber()

        self.assertTrue(result.changed)
        self.assertEqual(result.new_count, 3)
        self.assertEqual(self.ids(), [1, 2, 3])
        self.assertEqual(self.emails_by_id(), ["u3@example.com", "u8@example.com", "u20@example.com"])

    def test_renumber_orders_by_created_at_not_by_old_id(self):
        # Old id 9 is the oldest row, so it must become id 1.
        User.objects.create(id=2, name="Newer", email="newer@example.com",
                            created_at=self.T0 + timedelta(hours=1))
        User.objects.create(id=9, name="Older", email="older@example.com", created_at=self.T0)

        renumbering.renumber()
        self.assertEqual(self.emails_by_id(), ["older@example.com", "newer@example.com"])

    def test_renumber_preserves_every_other_column(self):
        self.seed_raw([2, 5])
        User.objects.filter(id=5).update(photo="/uploads/x.png")
        before = [
            {k: v for k, v in row.items() if k != "id"}
            for row in User.objects.order_by("created_at", "id").values()
        ]

        renumbering.renumber()

        after = [
            {k: v for k, v in row.items() if k != "id"}
            for row in User.objects.order_by("created_at", "id").values()
        ]
        self.assertEqual(before, after)

    def test_renumber_all_is_idempotent(self):
        self.seed_raw([4, 6, 7, 11])
        first = renumbering.renumber_all()
        snapshot = list(User.objects.order_by("id").values())

        second = renumbering.renumber_all()

        self.assertEqual(first, 4)
        self.assertEqual(second, 4)
        self.assertEqual(list(User.objects.order_by("id").values()), snapshot)
        self.assertFalse(renumbering.renumber().changed)

    def test_next_generated_id_follows_renumbered_rows(self):
        self.seed_raw([10, 30])
        renumbering.renumber()

        # A plain ORM insert (no renumber) must not collide with 1..N.
        extra = User.objects.create(name="Plain", email="plain@example.com")
        self.assertEqual(extra.id, 3)

    # -----------------------
    # create / delete
    # -----------------------
    def test_create_in_order_yields_1_2_3(self):
        a = self.create("Alice")
        b = self.create("Bob")
        c = self.create("Carol")

        self.assertEqual((a.id, b.id, c.id), (1, 2, 3))
        self.assertEqual(self.emails_by_id(), ["alice@example.com", "bob@example.com", "carol@example.com"])

    def test_create_returns_rank_and_keeps_invariant_after_gaps(self):
        self.seed_raw([5, 9])
        user = self.create("Dora")

        self.assertEqual(user.id, 3)
        self.assertEqual(self.ids(), [1, 2, 3])
        self.assertDense()

    def test_delete_middle_shifts_later_ids_down(self):
        self.create("Alice")
        self.create("Bob")
        self.create("Carol")

        result = renumbering.delete_with_renumber(2)

        self.assertEqual(result.deleted["email"], "bob@example.com")
        self.assertEqual(result.deleted["id"], 2)
        self.assertEqual(result.new_count, 2)
        self.assertEqual(self.ids(), [1, 2])
        self.assertEqual(User.objects.get(id=2).email, "carol@example.com")

    def test_delete_all_then_create_starts_at_1(self):
        self.create("Alice")
        self.create("Bob")
        renumbering.delete_with_renumber(1)
        renumbering.delete_with_renumber(1)
        self.assertEqual(User.objects.count(), 0)

        user = self.create("Carol")
        self.assertEqual(user.id, 1)

    def test_sequential_deletes_see_renumbered_ids(self):
        for name in ("Alice", "Bob", "Carol", "Dave"):
            self.create(name)

        renumbering.delete_with_renumber(2)   # Bob
        renumbering.delete_with_renumber(3)   # now Dave (was 4)

        self.assertEqual(self.emails_by_id(), ["alice@example.com", "carol@example.com"])
        self.assertEqual(self.ids(), [1, 2])

    def test_delete_missing_raises_not_found(self):
        self.create("Alice")
        with self.assertRaises(NotFoundError):
            renumbering.delete_with_renumber(99)
        with self.assertRaises(NotFoundError):
            renumbering.delete_with_renumber("abc")
        self.assertEqual(self.ids(), [1])

    def test_invariant_holds_through_mixed_operations(self):
        for i in range(6):
            self.create(f"Person{i}")
            self.assertDense()
        for pk in (6, 1, 3):
            renumbering.delete_with_renumber(pk)
            self.assertDense()
        self.create("Late")
        self.assertDense()
        self.assertEqual(User.objects.get(id=4).email, "late@example.com")

    # -----------------------
    # Failure → rollback
    # -----------------------
    @override_settings(RENUMBER_BATCH_SIZE=1)
    def test_fault_mid_rewrite_rolls_back(self):
        self.seed_raw([1, 3, 4, 6, 9])
        before = list(User.objects.order_by("id").values())

        real_insert = renumbering._insert_batch
        inserted = []

        def flaky_insert(objs):
            if len(inserted) == 2:
                raise DatabaseError("disk I/O error")
            real_insert(objs)
            inserted.extend(objs)

        with mock.patch("users.renumbering._insert_batch", side_effect=flaky_insert):
            with self.assertLogs("users.renumbering", level="ERROR"):
                with self.assertRaises(RenumberFailure):
                    renumbering.renumber()

        self.assertEqual(len(inserted), 2)
        self.assertEqual(list(User.objects.order_by("id").values()), before)

    @override_settings(RENUMBER_BATCH_SIZE=1)
    def test_fault_during_create_discards_the_new_row(self):
        self.seed_raw([2, 5])

        with mock.patch("users.renumbering._insert_batch", side_effect=DatabaseError("boom")):
            with self.assertLogs("users.renumbering", level="ERROR"):
                with self.assertRaises(RenumberFailure):
                    self.create("Eve")

        self.assertFalse(User.objects.filter(email="eve@example.com").exists())
        self.assertEqual(self.ids(), [2, 5])

    # -----------------------
    # Validation & duplicates
    # -----------------------
    def test_create_collects_all_field_errors(self):
        with self.assertRaises(ValidationError) as ctx:
            renumbering.create_with_renumber({"name": " A ", "email": "not-an-email", "age": 200})

        errors = ctx.exception.errors
        self.assertIn("name", errors)
        self.assertIn("email", errors)
        self.assertIn("age", errors)
        self.assertEqual(User.objects.count(), 0)

    def test_create_requires_name_and_email(self):
        with self.assertRaises(ValidationError) as ctx:
            renumbering.create_with_renumber({})
        self.assertIn("name", ctx.exception.errors)
        self.assertIn("email", ctx.exception.errors)

    def test_create_boundaries_accepted(self):
        user = renumbering.create_with_renumber({"name": "Al", "email": "al@example.com", "age": 1})
        self.assertEqual(user.age, 1)
        user = renumbering.create_with_renumber(
            {"name": "x" * 100, "email": "max@example.com", "age": 150}
        )
        self.assertEqual(user.age, 150)
        user = renumbering.create_with_renumber({"name": "No Age", "email": "na@example.com", "age": ""})
        self.assertIsNone(user.age)

    def test_duplicate_email_case_insensitive(self):
        self.create("Alice", email="alice@example.com")
        with self.assertRaises(DuplicateEmailError):
            self.create("Other", email="ALICE@Example.com")
        self.assertEqual(User.objects.count(), 1)

    def test_duplicate_detected_by_database_is_mapped(self):
        self.create("Alice", email="alice@example.com")
        with mock.patch("users.renumbering._email_taken", return_value=False):
            with self.assertRaises(DuplicateEmailError):
                self.create("Other", email="alice@example.com")
        self.assertEqual(self.ids(), [1])

    def test_email_is_stored_lowercase(self):
        user = self.create("Alice", email="  Alice@Example.COM ")
        self.assertEqual(user.email, "alice@example.com")

    # -----------------------
    # update / photo / stats
    # -----------------------
    def test_update_does_not_renumber(self):
        self.seed_raw([2, 7])
        user = renumbering.update_user(7, {"name": "Renamed", "age": 44})

        self.assertEqual(user.id, 7)
        self.assertEqual(self.ids(), [2, 7])
        self.assertEqual(User.objects.get(id=7).name, "Renamed")
        self.assertGreater(user.updated_at, user.created_at)

    def test_update_duplicate_and_missing(self):
        self.create("Alice")
        self.create("Bob")
        with self.assertRaises(DuplicateEmailError):
            renumbering.update_user(2, {"email": "ALICE@example.com"})
        with self.assertRaises(NotFoundError):
            renumbering.update_user(42, {"name": "Nobody"})
        # Keeping one's own email is fine.
        renumbering.update_user(1, {"email": "alice@example.com", "name": "Alice B"})

    def test_update_validation(self):
        self.create("Alice")
        with self.assertRaises(ValidationError) as ctx:
            renumbering.update_user(1, {"age": 0})
        self.assertIn("age", ctx.exception.errors)

    def test_assign_photo_returns_previous(self):
        self.create("Alice")
        user, previous = renumbering.assign_photo(1, "/uploads/a.png")
        self.assertIsNone(previous)
        self.assertEqual(user.photo, "/uploads/a.png")

        _, previous = renumbering.assign_photo(1, "/uploads/b.png")
        self.assertEqual(previous, "/uploads/a.png")
        self.assertEqual(User.objects.get(id=1).photo, "/uploads/b.png")

    def test_id_stats_reports_gaps(self):
        self.seed_raw([1, 2, 5, 7])
        stats = renumbering.id_stats()

        self.assertEqual(stats.total, 4)
        self.assertEqual(stats.ids, [1, 2, 5, 7])
        self.assertEqual(stats.expected, [1, 2, 3, 4])
        self.assertEqual(stats.gaps, [3, 4, 6])
        self.assertFalse(stats.is_sequential)

        renumbering.renumber_all()
        stats = renumbering.id_stats()
        self.assertTrue(stats.is_sequential)
        self.assertTrue(stats.order_matches_created_at)
        self.assertEqual(stats.gaps, [])

    # -----------------------
    # Age must be a whole number
    # -----------------------
    def test_fractional_and_boolean_ages_are_rejected(self):
        for age in (1.9, 150.7, True, False):
            with self.subTest(age=age):
                with self.assertRaises(ValidationError) as ctx:
                    renumbering.create_with_renumber({"name": "Alice", "email": "alice@example.com", "age": age})
                self.assertEqual(ctx.exception.errors["age"], ["Age must be a whole number."])
        self.assertEqual(User.objects.count(), 0)

    def test_integral_float_age_is_accepted(self):
        user = renumbering.create_with_renumber({"name": "Alice", "email": "alice@example.com", "age": 30.0})
        self.assertEqual(user.age, 30)

    def test_age_error_is_reported_with_other_field_errors(self):
        with self.assertRaises(ValidationError) as ctx:
            renumbering.create_with_renumber({"name": "A", "email": "alice@example.com", "age": 2.5})
        self.assertIn("name", ctx.exception.errors)
        self.assertIn("age", ctx.exception.errors)

    def test_update_rejects_fractional_age(self):
        self.create("Alice", age=30)
        with self.assertRaises(ValidationError):
            renumbering.update_user(1, {"age": 30.5})
        self.assertEqual(User.objects.get(id=1).age, 30)

    # -----------------------
    # Lock failures
    # -----------------------
    def test_lock_timeout_on_delete_raises_renumber_failure(self):
        self.seed_raw([1, 2, 3])
        timeout = OperationalError("canceling statement due to lock timeout")

        with mock.patch("users.renumbering._lock_table", side_effect=timeout):
            with self.assertLogs("users.renumbering", level="ERROR"):
                with self.assertRaises(RenumberFailure) as ctx:
                    renumbering.delete_with_renumber(2)

        self.assertIs(ctx.exception.__cause__, timeout)
        self.assertEqual(self.ids(), [1, 2, 3])

    def test_lock_timeout_on_create_raises_renumber_failure(self):
        with mock.patch("users.renumbering._lock_table", side_effect=OperationalError("database is locked")):
            with self.assertLogs("users.renumbering", level="ERROR"):
                with self.assertRaises(RenumberFailure):
                    self.create("Alice")
        self.assertEqual(User.objects.count(), 0)

    def test_update_and_photo_take_the_table_lock(self):
        self.create("Alice")
        with mock.patch("users.renumbering._lock_table", wraps=renumbering._lock_table) as lock:
            renumbering.update_user(1, {"name": "Alice B"})
            renumbering.assign_photo(1, "/uploads/a.png")
        self.assertEqual(lock.call_count, 2)

    def test_lock_timeout_on_update_raises_store_error(self):
        self.create("Alice")
        with mock.patch("users.renumbering._lock_table", side_effect=OperationalError("lock timeout")):
            with self.assertLogs("users.renumbering", level="ERROR"):
                with self.assertRaises(UserStoreError):
                    renumbering.update_user(1, {"name": "Alice B"})
                with self.assertRaises(UserStoreError):
                    renumbering.assign_photo(1, "/uploads/a.png")
        user = User.objects.get(id=1)
        self.assertEqual(user.name, "Alice")
        self.assertIsNone(user.photo)

    # -----------------------
    # Bulk delete
    # -----------------------
    def test_delete_many_uses_ids_from_before_the_delete(self):
        for name in ("A1", "B2", "C3", "D4", "E5"):
            self.create(name)

        result = renumbering.delete_many_with_renumber([2, 4, 99])

        self.assertEqual([row["email"] for row in result.deleted], ["b2@example.com", "d4@example.com"])
        self.assertEqual(result.new_count, 3)
        self.assertEqual(self.emails_by_id(), ["a1@example.com", "c3@example.com", "e5@example.com"])
        self.assertDense()

    def test_delete_many_rolls_back_on_fault(self):
        self.seed_raw([1, 2, 3])
        with mock.patch("users.renumbering._insert_batch", side_effect=DatabaseError("boom")):
            with self.assertLogs("users.renumbering", level="ERROR"):
                with self.assertRaises(RenumberFailure):
                    renumbering.delete_many_with_renumber([1])
        self.assertEqual(self.ids(), [1, 2, 3])
