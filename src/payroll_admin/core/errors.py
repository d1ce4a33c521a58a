"""Error definitions for tenant and identity operations.

Every failure a core operation can report is one of these exceptions, each
carrying a stable error code so the CLI and any other caller can map them
without string matching.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for tenant and identity operations."""

    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    ORGANIZATION_NOT_FOUND = "ORGANIZATION_NOT_FOUND"
    IRRECONCILABLE_IDENTITY = "IRRECONCILABLE_IDENTITY"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Upstream (identity provider / document store)
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"


class ConflictKind(str, Enum):
    """Which uniqueness invariant a write would have violated."""

    ORG_EXISTS = "org_exists"
    IDENTITY_EXISTS = "identity_exists"
    DOMAIN_TAKEN = "domain_taken"


class TenancyError(Exception):
    """Base exception for all tenant and identity errors.

    Attributes:
        code: Standardized error code.
        message: Human-readable error message.
        details: Additional error details.
        retryable: Whether the same call may be retried as-is.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        """Initialize the tenancy error."""
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for CLI output."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details if self.details else None,
                "retryable": self.retryable,
            }
        }


class NotFoundError(TenancyError):
    """A lookup did not match anything."""

    def __init__(
        self,
        message: str = "Not found",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize not found error."""
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message,
            details=details,
        )


class IdentityNotFoundError(NotFoundError):
    """No identity exists for the given uid or email."""

    def __init__(self, uid: str | None = None, email: str | None = None) -> None:
        """Initialize identity not found error."""
        target = uid if uid is not None else email
        details: dict[str, Any] = {}
        if uid is not None:
            details["uid"] = uid
        if email is not None:
            details["email"] = email
        super().__init__(
            message=f"Identity not found: {target}",
            details=details,
        )


class ConflictError(TenancyError):
    """The write would violate a uniqueness invariant."""

    def __init__(
        self,
        kind: ConflictKind,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize conflict error."""
        super().__init__(
            code=ErrorCode.CONFLICT,
            message=message,
            details={"kind": kind.value, **(details or {})},
        )
        self.kind = kind


class OrganizationNotFoundError(TenancyError):
    """A referenced organization does not exist."""

    def __init__(self, org_id: str) -> None:
        """Initialize organization not found error."""
        super().__init__(
            code=ErrorCode.ORGANIZATION_NOT_FOUND,
            message=f"Organization {org_id} not found",
            details={"org_id": org_id},
        )
        self.org_id = org_id


class IrreconcilableIdentityError(TenancyError):
    """Neither claims nor profile give a usable tenant and role.

    An operator has to supply the organization and role (``set_claims``)
    before the identity can be reconciled.
    """

    def __init__(self, uid: str, reason: str) -> None:
        """Initialize irreconcilable identity error."""
        super().__init__(
            code=ErrorCode.IRRECONCILABLE_IDENTITY,
            message=f"Cannot reconcile identity {uid}: {reason}",
            details={"uid": uid, "reason": reason},
        )
        self.uid = uid


class InvalidRequestError(TenancyError):
    """The request itself is malformed (bad role, short password, empty domain)."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
    ) -> None:
        """Initialize invalid request error."""
        super().__init__(
            code=ErrorCode.INVALID_REQUEST,
            message=message,
            details={"field": field} if field else None,
        )


class UpstreamUnavailableError(TenancyError):
    """The identity provider or document store failed transiently."""

    def __init__(
        self,
        message: str = "Upstream service unavailable",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize upstream unavailable error."""
        super().__init__(
            code=ErrorCode.UPSTREAM_UNAVAILABLE,
            message=message,
            details=details,
            retryable=True,
        )


class UpstreamError(TenancyError):
    """The identity provider or document store rejected the call."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize upstream error."""
        super().__init__(
            code=ErrorCode.UPSTREAM_ERROR,
            message=message,
            details=details,
        )
