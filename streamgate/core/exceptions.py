from typing import List, Optional


class AuthError(Exception):
    """Raised when a request fails the credential gate."""

    def __init__(self, error_codes: List[str], message: str = None):
        self.error_codes = list(error_codes)
        self.message = message or f"Authentication failed: {', '.join(self.error_codes)}"
        super().__init__(self.message)


class UpstreamVerificationError(AuthError):
    """Raised when the attestation service fails or cannot be reached."""

    def __init__(self, message: str, error_codes: Optional[List[str]] = None):
        super().__init__(error_codes or ["internal-error"], message)


class SessionTokenError(Exception):
    """Base exception for session token verification failures."""

    reason = "invalid"


class MalformedSessionToken(SessionTokenError):
    reason = "malformed"


class ForgedSessionToken(SessionTokenError):
    reason = "forged"


class ExpiredSessionToken(SessionTokenError):
    reason = "expired"


class EngineError(Exception):
    """Raised by the provider engine when an invocation cannot proceed."""


class NotFoundError(Exception):
    """Raised by a scraper when the requested media is not available."""
