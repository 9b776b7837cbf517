"""
users/exceptions.py — Domain errors for the user store + DRF translation

Taxonomy
===============================================================================
- ValidationError      → bad input; `errors` maps field → [messages]  (400)
- DuplicateEmailError  → email already taken                          (400)
- NotFoundError        → no user with that id                          (404)
- RenumberFailure      → storage fault while rewriting ids; the
                         transaction was rolled back                    (500)
- UserStoreError       → storage fault during an update; rolled back   (500)
- PhotoStorageError    → photo backend (local disk / S3) failed         (502)

The service layer (users.renumbering) raises these without knowing about HTTP.
`api_exception_handler` is wired as REST_FRAMEWORK["EXCEPTION_HANDLER"] and
turns them into responses. Fatal errors are logged with their cause and
answered with a generic message; the cause is never exposed.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class UserServiceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "User service error."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"detail": self.message}


class ValidationError(UserServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid data."

    def __init__(self, errors, message=None):
        # Always a dict of lists so every violated rule is reported.
        self.errors = {field: list(msgs) for field, msgs in errors.items()}
        super().__init__(message)

    def to_payload(self) -> dict:
        return {"detail": self.message, "errors": self.errors}


class DuplicateEmailError(UserServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Email already exists."

    def __init__(self, email, message=None):
        self.email = email
        super().__init__(message)

    def to_payload(self) -> dict:
        return {"detail": self.message, "errors": {"email": [self.message]}}


class NotFoundError(UserServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found."

    def __init__(self, user_id, message=None):
        self.user_id = user_id
        super().__init__(message)


class RenumberFailure(UserServiceError):
    default_message = "Could not renumber user ids; no changes were applied."


class UserStoreError(UserServiceError):
    default_message = "User store error; no changes were applied."


class PhotoStorageError(UserServiceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Photo storage is unavailable."


def api_exception_handler(exc, context):
    """DRF hook: domain errors → JSON responses, everything else → DRF default."""
    if isinstance(exc, UserServiceError):
        if exc.status_code >= 500:
            view = context.get("view")
            logger.error(
                "%s in %s: %s", type(exc).__name__, type(view).__name__ if view else "?", exc,
                exc_info=exc,
            )
            return Response({"detail": exc.default_message}, status=exc.status_code)
        return Response(exc.to_payload(), status=exc.status_code)
    return drf_exception_handler(exc, context)
