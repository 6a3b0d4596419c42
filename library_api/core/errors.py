import uuid

from fastapi import status


class LibraryError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(LibraryError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(LibraryError):
    """Duplicate unique key (email, ISBN)."""

    status_code = status.HTTP_409_CONFLICT


class InvalidStateError(LibraryError):
    """Operation not allowed in the current state of the entity."""

    status_code = status.HTTP_400_BAD_REQUEST


class ValidationError(LibraryError):
    status_code = 422


def ensure_uuid(value: str, field: str = "id") -> str:
    """Return ``value`` in canonical UUID form or raise ValidationError."""
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a valid UUID")
