"""Domain error taxonomy shared by services and rendered by the API layer."""
from __future__ import annotations

from datetime import date
from typing import Any


class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationError(DomainError):
    """Raised when input data is malformed or violates a roster rule."""


class NotFoundError(DomainError):
    """Raised when a group, user or sheet required by the request is missing."""

    status_code = 404


class AuthorizationError(DomainError):
    """Raised when the caller lacks admin rights on a group."""

    status_code = 403


class PersistenceError(DomainError):
    """Raised when a store operation fails."""

    status_code = 503


class PartialApplicationError(PersistenceError):
    """Some date partitions of a bulk call were committed, others were not.

    Committed partitions are never rolled back; callers should retry the
    whole batch, which is safe because the bulk upsert is idempotent.
    """

    def __init__(self, succeeded: list[date], failed: dict[date, str]):
        super().__init__(
            f"Attendance saved for {len(succeeded)} of {len(succeeded) + len(failed)} dates",
            succeeded=[d.isoformat() for d in succeeded],
            failed={d.isoformat(): reason for d, reason in failed.items()},
        )
        self.succeeded = succeeded
        self.failed = failed


class SheetConflictError(PersistenceError):
    """Another writer created the same (group, date) sheet first; re-read and merge again."""
