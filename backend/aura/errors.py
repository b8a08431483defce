"""Domain error taxonomy shared by services and routers."""

from __future__ import annotations


class AuraError(Exception):
    """Base exception for habit-domain failures."""


class AuthenticationRequired(AuraError):
    """Raised when an operation needs an identity and none is present."""


class NotFound(AuraError):
    """Raised when a referenced habit or month has no match."""


class ValidationFailed(AuraError):
    """Raised when input breaks a domain rule (cap exceeded, empty field, bad date)."""


class UpstreamUnavailable(AuraError):
    """Raised when the language service or the store cannot be reached or is not configured."""


class MalformedResponse(AuraError):
    """Raised when an upstream service answers with something we cannot act on."""


class CapReached(ValidationFailed):
    """Raised when adding a habit would exceed the configured cap."""
