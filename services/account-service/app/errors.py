"""Error taxonomy for the account service.

Every failure raised by the core carries a stable :class:`ErrorKind` so the
HTTP edge (and any other caller) can translate it without inspecting
messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    unauthenticated = "UNAUTHENTICATED"
    unauthorized = "UNAUTHORIZED"
    conflict = "CONFLICT"
    not_found = "NOT_FOUND"
    invalid_argument = "INVALID_ARGUMENT"
    internal = "INTERNAL"


class AccountServiceError(Exception):
    """Base exception for all account service errors."""

    kind: ErrorKind = ErrorKind.internal

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.kind.value
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class UnauthenticatedError(AccountServiceError):
    """Missing, invalid or expired credentials."""

    kind = ErrorKind.unauthenticated


class UnauthorizedError(AccountServiceError):
    """Well-formed credentials that do not grant access."""

    kind = ErrorKind.unauthorized


class ConflictError(AccountServiceError):
    kind = ErrorKind.conflict


class NotFoundError(AccountServiceError):
    kind = ErrorKind.not_found

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            f"{resource} not found",
            details={"resource": resource, "id": identifier},
        )


class InvalidArgumentError(AccountServiceError):
    kind = ErrorKind.invalid_argument


class InternalError(AccountServiceError):
    """Unexpected storage failure; the original cause is chained, never exposed."""

    kind = ErrorKind.internal
