"""
Client for the property-leasing REST API.

Attaches access tokens to outgoing requests, renews them silently through
the refresh cookie, and drives the email, phone and password-reset
verification flows.
"""

from .credential_store import (
    Credential,
    CredentialStore,
    FileCredentialStore,
    MemoryCredentialStore,
    Role,
    UserIdentity,
)
from .gateway import AuthGateway
from .navigation import Navigator
from .refresh import RefreshCoordinator
from .transport import RequestSpec, Transport

__all__ = [
    "AuthGateway",
    "Credential",
    "CredentialStore",
    "FileCredentialStore",
    "MemoryCredentialStore",
    "Navigator",
    "RefreshCoordinator",
    "RequestSpec",
    "Role",
    "Transport",
    "UserIdentity",
]
