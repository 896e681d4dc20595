"""Custom exceptions for PresenceGuard.

Provides a hierarchy of exceptions for different error types.
All PresenceGuard exceptions inherit from PresenceGuardException.

Adversarial input (bad GPS, replayed challenges, rate limiting) is never
raised: it becomes an ordinary rejected decision. These exceptions cover
contract violations and infrastructure failures only.
"""

from typing import Any, Dict, Optional


class PresenceGuardException(Exception):
    """Base exception for all PresenceGuard errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: str = "PRESENCE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(PresenceGuardException):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class ValidationError(PresenceGuardException):
    """Raised when input has a malformed shape (a caller defect)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class StoreUnavailableError(PresenceGuardException):
    """Raised when the transactional store cannot be reached or fails."""

    def __init__(
        self,
        message: str,
        operation: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["operation"] = operation
        super().__init__(message, code="STORE_UNAVAILABLE", details=details)


class AuditError(PresenceGuardException):
    """Raised when an audit record write cannot be confirmed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="AUDIT_ERROR", details=details)


class CommitConflictError(PresenceGuardException):
    """Raised when the reward commit loses a race on cooldown or hourly caps."""

    def __init__(
        self,
        message: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["reason"] = reason
        self.reason = reason
        super().__init__(message, code="COMMIT_CONFLICT", details=details)
