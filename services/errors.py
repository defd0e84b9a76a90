"""Error kinds raised by the services.

Every error carries a stable machine-readable ``code``; ``str(error)`` is
that code, so callers can keep comparing codes the way the routes do.
Raising any of these inside a unit of work rolls the whole unit back.
"""
from typing import Optional


class ServiceError(ValueError):
    code = "INTERNAL"

    def __init__(self, message: str = "", code: Optional[str] = None):
        if code is not None:
            self.code = code
        self.message = message or self.code
        super().__init__(self.code)


class AlreadyExistsError(ServiceError):
    code = "ALREADY_EXISTS"


class NotFoundError(ServiceError):
    code = "NOT_FOUND"


class ConflictError(ServiceError):
    code = "CONFLICT"

    REASONS = {
        "PR_MERGED": "merged",
        "NOT_ASSIGNED": "notAssigned",
        "NO_CANDIDATE": "noCandidate",
    }

    @property
    def reason(self) -> str:
        return self.REASONS.get(self.code, self.code)


class InvalidInputError(ServiceError):
    code = "BAD_REQUEST"


def require_ids(**values: str) -> None:
    """Reject empty identifiers before any store access."""
    for field, value in values.items():
        if not isinstance(value, str) or not value.strip():
            raise InvalidInputError(f"{field} must be a non-empty string")
