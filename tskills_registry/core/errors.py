"""
Registry error taxonomy.

Every error carries a stable ``code`` and a message that names the rule that
fired, so callers can decide whether to retry, ask for permission, or fix
their input. The HTTP layer maps each class to a status code.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import pydantic


class RegistryError(Exception):
    """Base class for all registry errors."""

    code = "REGISTRY_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "status": self.status_code,
            "details": self.details,
        }


class ValidationError(RegistryError):
    """Malformed input, scoped to a field."""

    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message, {**(details or {}), "field": field})
        self.field = field

    @classmethod
    def from_pydantic(cls, exc: pydantic.ValidationError) -> "ValidationError":
        """Convert the first pydantic error into a field-scoped error."""
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        message = first.get("msg", "Invalid input").removeprefix("Value error, ")
        return cls(message, field=field)


class ConflictError(RegistryError):
    """A uniqueness rule would be violated (slug, version, membership)."""

    code = "CONFLICT_ERROR"
    status_code = 409


class PermissionDeniedError(RegistryError):
    """The caller lacks the role or ownership the operation requires."""

    code = "PERMISSION_ERROR"
    status_code = 403

    def __init__(self, message: str, required_role: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        merged = dict(details or {})
        if required_role is not None:
            merged["required_role"] = required_role
        super().__init__(message, merged)
        self.required_role = required_role


class NotFoundError(RegistryError):
    """A resource is missing (or not visible to the caller)."""

    code = "NOT_FOUND_ERROR"
    status_code = 404

    def __init__(self, message: str, resource: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, {**(details or {}), "resource": resource})
        self.resource = resource


class InvariantError(RegistryError):
    """The operation would break an always-true structural rule."""

    code = "INVARIANT_ERROR"
    status_code = 409

    def __init__(self, message: str, rule: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, {**(details or {}), "rule": rule})
        self.rule = rule


class RateLimitError(RegistryError):
    """Quota exceeded for an action in the current window."""

    code = "RATE_LIMIT_ERROR"
    status_code = 429

    def __init__(
        self,
        message: str,
        *,
        retry_after: int,
        limit: int,
        remaining: int,
        reset_at: Optional[datetime],
        action: str,
    ):
        super().__init__(
            message,
            {
                "action": action,
                "limit": limit,
                "remaining": remaining,
                "reset_at": reset_at.isoformat() if reset_at else None,
                "retry_after": retry_after,
            },
        )
        self.retry_after = retry_after
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at
        self.action = action


class AuthError(RegistryError):
    """Missing, invalid or expired credentials."""

    code = "AUTH_ERROR"
    status_code = 401
