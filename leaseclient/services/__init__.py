"""
Services layer for the leasing API client.

Session handling and verification flow construction, shared by the CLI and
any application embedding the client.
"""

from .base import BaseService, ServiceContext
from .session_service import LoginOutcome, LoginResult, OAuthResult, SessionService
from .verification_service import VerificationService

__all__ = [
    # Base
    "BaseService",
    "ServiceContext",
    # Services
    "SessionService",
    "VerificationService",
    # Data classes
    "LoginOutcome",
    "LoginResult",
    "OAuthResult",
]


def create_services(context: ServiceContext = None):
    """
    Factory function to create all services with proper dependencies.

    Args:
        context: Optional ServiceContext (creates one if not provided)

    Returns:
        Tuple of (context, session, verification)
    """
    if context is None:
        context = ServiceContext.create()

    session_service = SessionService(context)
    verification_service = VerificationService(context, session_service)

    return context, session_service, verification_service
