"""
Error taxonomy for the leasing API client.

ValidationError never reaches the network. AuthorizationError is consumed by
the gateway/refresh pair. ApiError and TransportError are what feature code
sees for everything else.
"""

from typing import Optional


class LeaseClientError(Exception):
    """Base class for all client errors."""


# Client-side validation

class ValidationError(LeaseClientError):
    """Input rejected before any request is made."""


class PasswordMismatch(ValidationError):
    def __init__(self):
        super().__init__("Passwords do not match")


class PasswordTooShort(ValidationError):
    def __init__(self, min_length: int = 8):
        self.min_length = min_length
        super().__init__(f"Password must be at least {min_length} characters")


class CodeTooShort(ValidationError):
    def __init__(self, min_length: int, exact: bool = False):
        self.min_length = min_length
        self.exact = exact
        if exact:
            super().__init__(f"Enter the {min_length}-digit code")
        else:
            super().__init__("Enter the full OTP code")


# Transport / server

class TransportError(LeaseClientError):
    """Network-level failure: no HTTP response was received."""


class ApiError(LeaseClientError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, message: Optional[str] = None, payload: Optional[dict] = None):
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}
        super().__init__(message or f"HTTP {status_code}")


class ChallengeRejected(ApiError):
    """Server refused a verification code, OTP or reset token (4xx)."""


# Authorization

class AuthorizationError(LeaseClientError):
    """Access token rejected and could not be renewed."""


class RefreshFailed(AuthorizationError):
    """The refresh endpoint did not issue a new access token."""


class SessionExpired(AuthorizationError):
    """Refresh failed; credentials were cleared and login was requested."""


class OAuthFailed(AuthorizationError):
    """OAuth redirect arrived without an access token."""
