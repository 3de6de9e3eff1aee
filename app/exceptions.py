"""
Magic link exceptions.

LinkDenied covers every reason a link may not be used. The reason is for
internal logs only; the API maps all of them to one 403 response.
"""

import enum
from typing import Any


class DenialReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    INSUFFICIENT_SCOPE = "insufficient_scope"
    RESOURCE_MISMATCH = "resource_mismatch"


class MagicLinkError(Exception):
    """Base exception for the magic link system."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class LinkDenied(MagicLinkError):
    """Raised when a magic link does not grant the requested access."""

    def __init__(self, reason: DenialReason, link_id: Any = None, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Magic link denied: {reason.value}",
            details=details,
        )
        self.reason = reason
        self.link_id = link_id


class TokenHashConflict(MagicLinkError):
    """Raised when a new link's token_hash is already taken."""

    def __init__(self):
        super().__init__("Token hash already exists")


class IssuanceError(MagicLinkError):
    """Raised when a link cannot be issued with the requested parameters."""
    pass


class StoreUnavailable(MagicLinkError):
    """Transient database failure. Safe to retry."""
    pass
