"""
Error taxonomy shared by the workflow services.

Services raise these after validating preconditions; the application
installs a single handler (see ``libraxpert.main``) that turns them into
``{"detail": <message>}`` JSON responses with the matching status code.
"""
from fastapi import status


class LibraryError(Exception):
    """Base class for workflow errors surfaced verbatim to API callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LibraryError):
    """A referenced book, request, reservation, notification or feedback id does not resolve."""

    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(LibraryError):
    """Caller role is insufficient, or caller does not own the entity."""

    status_code = status.HTTP_403_FORBIDDEN


class InvalidStateError(LibraryError):
    """Operation attempted outside the entity's allowed state."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(LibraryError):
    """Duplicate pending request/reservation, or no copies left at approval time."""

    status_code = status.HTTP_409_CONFLICT


class LimitExceededError(LibraryError):
    """A per-loan cap such as the renewal limit has been reached."""

    status_code = status.HTTP_400_BAD_REQUEST
