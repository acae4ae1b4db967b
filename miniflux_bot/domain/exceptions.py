"""Domain-specific exceptions.

These exceptions describe failures the bridge knows how to react to. The
background loops catch them, log, and move on to the next item or cycle;
only configuration errors are allowed to stop the process.
"""

from __future__ import annotations

from typing import Any


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConflictError(DomainException):
    """Raised when inserting an entry mapping that already exists."""


class NotFoundError(DomainException):
    """Raised when a stored mapping or an upstream entry does not exist."""


class UpstreamUnavailableError(DomainException):
    """Raised when a call to Miniflux or Telegram fails."""


class UnauthorizedError(DomainException):
    """Raised when a callback comes from the wrong user or carries the wrong secret."""


class InvalidCallbackError(DomainException):
    """Raised when callback data cannot be parsed."""


class InvalidSecretError(ValueError):
    """Raised when the configured callback secret is not 1-15 alphanumeric characters."""


class ConfigInvalidError(RuntimeError):
    """Raised when configuration cannot be loaded or validated."""
