"""
users/renumbering.py — Dense-id user store operations


Purpose
===============================================================================
Keep `users_user.id` a gap-free 1..N sequence ordered by creation time.
Every insert and delete is followed, inside the same transaction, by a full
rewrite of the table:

    lock table → read rows by (created_at, id) → delete all →
    re-insert with ids 1..N (all other columns verbatim) →
    move the id generator past N → verify → commit

If anything fails after the lock, the whole transaction rolls back and the
caller gets RenumberFailure; the table is either fully renumbered or untouched.
Updates take the same lock (so a row cannot move under them) and report
database faults as UserStoreError.

Locking
- PostgreSQL: LOCK TABLE ... SHARE ROW EXCLUSIVE (writers queue, readers keep
  the last committed snapshot), bounded by SET LOCAL lock_timeout.
- SQLite: settings open transactions with BEGIN IMMEDIATE, so the database
  write lock is already held when we get here.
- Anything else: SELECT ... FOR UPDATE over every row.

Public operations
- renumber()                  → RenumberResult
- renumber_all()              → int (idempotent manual trigger)
- create_with_renumber(dict)  → User
- delete_with_renumber(id)    → DeleteResult
- delete_many_with_renumber(ids) → BulkDeleteResult (one renumber for all)
- update_user(id, dict)       → User (no renumbering)
- assign_photo(id, ref)       → (User, previous_ref)
- id_stats()                  → IdStats (read-only report)
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, connection, transaction

from .exceptions import (
    DuplicateEmailError,
    NotFoundError,
    RenumberFailure,
    UserStoreError,
    ValidationError,
)
from .models import User

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "email", "age")
CARRIED_FIELDS = ("name", "email", "age", "photo", "created_at", "updated_at")


@dataclass(frozen=True)
class RenumberResult:
    new_count: int
    changed: bool
    success: bool = True


@dataclass(frozen=True)
class DeleteResult:
    deleted: dict
    new_count: int


@dataclass(frozen=True)
class BulkDeleteResult:
    deleted: list
    new_count: int


@dataclass(frozen=True)
class IdStats:
    total: int
    ids: list = field(default_factory=list)
    expected: list = field(default_factory=list)
    is_sequential: bool = True
    order_matches_created_at: bool = True
    gaps: list = field(default_factory=list)


# --------------------------------------------------------------------------- #
# Low-level table primitives                                                  #
# --------------------------------------------------------------------------- #

def _table():
    return User._meta.db_table


def _lock_table():
    """Take exclusive write access to the users table for the current transaction."""
    vendor = connection.vendor
    if vendor == "sqlite":
        return
    if vendor == "postgresql":
        with connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL lock_timeout = {int(settings.RENUMBER_LOCK_TIMEOUT_MS)}")
            cursor.execute(
                f"LOCK TABLE {connection.ops.quote_name(_table())} IN SHARE ROW EXCLUSIVE MODE"
            )
        return
    list(User.objects.select_for_update().values_list("pk", flat=True))


def _ordered_rows():
    return list(User.objects.order_by("created_at", "id").values("id", *CARRIED_FIELDS))


def _is_dense(ids):
    return list(ids) == list(range(1, len(ids) + 1))


def _insert_batch(objs):
    User.objects.bulk_create(objs)


def _set_next_id(next_value):
    """Point the primary-key generator at `next_value` (1 after an empty rewrite)."""
    table = _table()
    vendor = connection.vendor
    with connection.cursor() as cursor:
        if vendor == "sqlite":
            cursor.execute("UPDATE sqlite_sequence SET seq = %s WHERE name = %s", [next_value - 1, table])
        elif vendor == "postgresql":
            if next_value > 1:
                cursor.execute(
                    "SELECT setval(pg_get_serial_sequence(%s, 'id'), %s, true)", [table, next_value - 1]
                )
            else:
                cursor.execute("SELECT setval(pg_get_serial_sequence(%s, 'id'), 1, false)", [table])
        # MySQL/InnoDB moves AUTO_INCREMENT past explicit ids on its own and only
        # lowers it through ALTER TABLE, which would commit the transaction.


def _rewrite(rows):
    """Delete every row and re-insert `rows` with ids 1..N. Caller holds the lock."""
    batch_size = max(1, int(settings.RENUMBER_BATCH_SIZE))
    with connection.constraint_checks_disabled():
        User.objects.all().delete()
        _set_next_id(1)
        batch = []
        for rank, row in enumerate(rows, start=1):
            batch.append(User(id=rank, **{name: row[name] for name in CARRIED_FIELDS}))
            if len(batch) >= batch_size:
                _insert_batch(batch)
                batch = []
        if batch:
            _insert_batch(batch)
        _set_next_id(len(rows) + 1)
    connection.check_constraints(table_names=[_table()])


def _verify(expected_count):
    ids = [row["id"] for row in _ordered_rows()]
    if len(ids) != expected_count or not _is_dense(ids):
        raise RenumberFailure(
            f"Invariant violated after rewrite: expected ids 1..{expected_count}, got {ids[:20]}"
        )


# --------------------------------------------------------------------------- #
# Renumbering                                                                 #
# --------------------------------------------------------------------------- #

def renumber() -> RenumberResult:
    """
    Restore the dense-id invariant over the whole table.

    Runs in its own atomic block (a savepoint when called from inside another
    transaction). Rows already numbered 1..N in creation order are left alone.
    """
    try:
        with transaction.atomic():
            _lock_table()
            rows = _ordered_rows()
            if not rows:
                return RenumberResult(new_count=0, changed=False)

            count = len(rows)
            if _is_dense([row["id"] for row in rows]):
                _verify(count)
                logger.debug("User ids already dense (1..%d); nothing to rewrite", count)
                return RenumberResult(new_count=count, changed=False)

            logger.info("Renumbering %d users", count)
            _rewrite(rows)
            _verify(count)
    except RenumberFailure:
        logger.exception("Renumbering failed; transaction rolled back")
        raise
    except DatabaseError as exc:
        logger.exception("Renumbering failed; transaction rolled back")
        raise RenumberFailure() from exc

    logger.info("Renumbered %d users: ids 1..%d", count, count)
    return RenumberResult(new_count=count, changed=True)


def renumber_all() -> int:
    """Manual trigger. Safe to call repeatedly; returns the current row count."""
    return renumber().new_count


# --------------------------------------------------------------------------- #
# Validation helpers                                                          #
# --------------------------------------------------------------------------- #

def _normalize(fields):
    data = {name: fields[name] for name in EDITABLE_FIELDS if name in fields}
    if isinstance(data.get("name"), str):
        data["name"] = data["name"].strip()
    if isinstance(data.get("email"), str):
        data["email"] = data["email"].strip().lower()
    if data.get("age") == "":
        data["age"] = None
    return data


def _whole_number_errors(data):
    """Reject ages the integer column would silently truncate (True → 1, 1.9 → 1)."""
    age = data.get("age")
    if isinstance(age, bool) or (isinstance(age, float) and not age.is_integer()):
        del data["age"]
        return {"age": ["Age must be a whole number."]}
    if isinstance(age, float):
        data["age"] = int(age)
    return {}


def _apply_and_validate(user, fields):
    data = _normalize(fields)
    errors = _whole_number_errors(data)
    for name, value in data.items():
        setattr(user, name, value)
    try:
        user.full_clean(validate_unique=False, exclude=list(errors))
    except DjangoValidationError as exc:
        errors.update(exc.message_dict)
    if errors:
        raise ValidationError(errors)
    return user


def _email_taken(email, exclude_pk=None):
    qs = User.objects.filter(email__iexact=email)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    return qs.exists()


def _save_unique(user, **kwargs):
    try:
        with transaction.atomic():
            user.save(**kwargs)
    except IntegrityError as exc:
        # Unique index on email is the only constraint a valid row can trip.
        raise DuplicateEmailError(user.email) from exc


def _coerce_id(user_id):
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise NotFoundError(user_id) from None


@contextmanager
def _locked_transaction(failure=RenumberFailure):
    """
    Atomic block holding the table lock. Database faults (lock timeout, lost
    connection, ...) roll back and surface as `failure`; domain errors pass through.
    """
    try:
        with transaction.atomic():
            _lock_table()
            yield
    except DatabaseError as exc:
        logger.exception("User store transaction failed; rolled back")
        raise failure() from exc


# --------------------------------------------------------------------------- #
# Mutations                                                                   #
# --------------------------------------------------------------------------- #

def create_with_renumber(fields) -> User:
    """
    Validate, insert and renumber. Returns the stored row with its final id,
    which is its rank by creation time (i.e. N for a brand-new user).
    """
    user = _apply_and_validate(User(), fields)

    with _locked_transaction():
        if _email_taken(user.email):
            raise DuplicateEmailError(user.email)
        _save_unique(user, force_insert=True)
        provisional_id = user.pk
        renumber()
        created = User.objects.get(email=user.email)

    logger.info("Created user %s (provisional id %s → %s)", created.email, provisional_id, created.pk)
    return created


def delete_with_renumber(user_id) -> DeleteResult:
    """Delete one user and close the gap. Returns the pre-delete data and the new count."""
    pk = _coerce_id(user_id)

    with _locked_transaction():
        user = User.objects.filter(pk=pk).first()
        if user is None:
            raise NotFoundError(pk)
        snapshot = user.as_record()
        user.delete()
        result = renumber()

    logger.info("Deleted user %s (was id %s); %d users remain", snapshot["email"], pk, result.new_count)
    return DeleteResult(deleted=snapshot, new_count=result.new_count)


def delete_many_with_renumber(user_ids) -> BulkDeleteResult:
    """
    Delete every listed id in one transaction and renumber once. Ids are read
    before anything moves, so they all refer to the same numbering. Unknown ids
    are ignored.
    """
    pks = {_coerce_id(user_id) for user_id in user_ids}

    with _locked_transaction():
        users = list(User.objects.filter(pk__in=pks).order_by("id"))
        snapshots = [user.as_record() for user in users]
        User.objects.filter(pk__in=[user.pk for user in users]).delete()
        result = renumber()

    logger.info("Deleted %d users in bulk; %d users remain", len(snapshots), result.new_count)
    return BulkDeleteResult(deleted=snapshots, new_count=result.new_count)


def update_user(user_id, fields) -> User:
    """In-place update of name/email/age. Ids are not touched."""
    pk = _coerce_id(user_id)

    with _locked_transaction(failure=UserStoreError):
        user = User.objects.filter(pk=pk).first()
        if user is None:
            raise NotFoundError(pk)
        _apply_and_validate(user, fields)
        if "email" in fields and _email_taken(user.email, exclude_pk=user.pk):
            raise DuplicateEmailError(user.email)
        _save_unique(user)

    return user


def assign_photo(user_id, reference):
    """Store a new photo reference. Returns (user, previous_reference)."""
    pk = _coerce_id(user_id)

    with _locked_transaction(failure=UserStoreError):
        user = User.objects.filter(pk=pk).first()
        if user is None:
            raise NotFoundError(pk)
        previous = user.photo
        user.photo = reference
        user.save(update_fields=["photo"])

    return user, previous


# --------------------------------------------------------------------------- #
# Reporting                                                                   #
# --------------------------------------------------------------------------- #

def id_stats() -> IdStats:
    rows = _ordered_rows()
    by_created = [row["id"] for row in rows]
    ids = sorted(by_created)
    expected = list(range(1, len(ids) + 1))
    gaps = sorted(set(range(1, ids[-1] + 1)) - set(ids)) if ids else []
    return IdStats(
        total=len(ids),
        ids=ids,
        expected=expected,
        is_sequential=ids == expected,
        order_matches_created_at=by_created == ids,
        gaps=gaps,
    )
