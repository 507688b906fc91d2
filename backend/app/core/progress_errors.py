"""
Domain errors raised by the progress service.

Every error carries a ``kind`` (which maps to an HTTP status in app.main), a
machine-readable ``code``, an optional offending ``field`` and a user-facing
``message``. None of them are retried.
"""
from typing import Any, Dict, Optional

from fastapi import status


class ProgressError(Exception):
    """Base class for progress domain errors."""

    kind: str = "error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, code: str, message: str, field: Optional[str] = None):
        self.code = code
        self.message = message
        self.field = field
        super().__init__(message)

    def to_detail(self) -> Dict[str, Any]:
        """Serialisable body placed under ``detail`` in the HTTP response."""
        return {
            "kind": self.kind,
            "code": self.code,
            "field": self.field,
            "message": self.message,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, field={self.field!r})"


class ProgressNotFoundError(ProgressError):
    """Session, participant, test or progress record does not exist."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ProgressValidationError(ProgressError):
    """Supplied value out of range; the record was left unmodified."""

    kind = "validation"
    status_code = status.HTTP_400_BAD_REQUEST


class ProgressConflictError(ProgressError):
    """Operation not allowed in the record's current state."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class ProgressPreconditionError(ProgressError):
    """Participant or test exists but is not linked to the session."""

    kind = "precondition_not_met"
    status_code = 422


class StorageUnavailableError(ProgressError):
    """The progress store could not be reached."""

    kind = "storage_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__("STORAGE_UNAVAILABLE", message, field)
