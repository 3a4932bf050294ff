"""Exception taxonomy shared by services and HTTP controllers.

Services raise these exceptions; the FastAPI application registers a single
handler that turns them into ``{message, errors?}`` JSON responses with the
status code carried by the exception class.
"""

from typing import List, Optional


class StudyHabitsError(Exception):
    """Base class for all expected application errors."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = list(errors) if errors else []
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(StudyHabitsError):
    """Malformed or out-of-range input. Never reaches storage."""

    status_code = 400

    def __init__(self, errors, message: str = "Validation failed"):
        if isinstance(errors, str):
            errors = [errors]
        super().__init__(message, errors)


class AuthenticationError(StudyHabitsError):
    """Missing, invalid or expired credentials."""

    status_code = 401


class NotFoundError(StudyHabitsError):
    """The entity does not exist or is not owned by the caller."""

    status_code = 404


class ForbiddenError(StudyHabitsError):
    """The entity exists but its ownership chain ends at another user."""

    status_code = 403


class ConflictError(StudyHabitsError):
    """A uniqueness rule would be violated."""

    status_code = 400


class StorageError(StudyHabitsError):
    """Unexpected data-store failure."""

    status_code = 500

    def __init__(self, message: str = "Server error", detail: Optional[str] = None):
        self.detail = detail
        super().__init__(message)
