from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from webstack.security.validator import SecurityValidationResult


class WebstackError(Exception):
    """Base class for errors raised by webstack."""


class ValidationError(WebstackError, ValueError):
    """Malformed input, raised before any resource is created."""


class SecurityValidationError(WebstackError):
    """Raised by a fail-fast audit; carries the first failing result."""

    def __init__(self, result: "SecurityValidationResult") -> None:
        super().__init__(f"Security validation failed: {result.message}")
        self.result = result
