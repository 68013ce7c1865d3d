"""
Verification service.

Builds verification flows wired to the shared gateway and configured code
and password rules. Each call returns a fresh flow: flows are not kept
across views.
"""

import logging

from ..challenges import EmailVerificationFlow, ForgotPasswordFlow, PasswordResetFlow, PhoneOtpFlow
from .base import BaseService, ServiceContext
from .session_service import SessionService

logger = logging.getLogger(__name__)


class VerificationService(BaseService):
    """Factory for email, phone and password-reset flows."""

    def __init__(self, context: ServiceContext, session: SessionService):
        super().__init__(context)
        self.session = session

    def email_verification(self, email: str = "") -> EmailVerificationFlow:
        return EmailVerificationFlow(
            self.gateway,
            email=email,
            code_length=self.config.auth.email_code_length,
        )

    def phone_verification(self, code_already_sent: bool = False) -> PhoneOtpFlow:
        """Phone OTP flow; a success updates the cached identity."""
        return PhoneOtpFlow(
            self.gateway,
            min_length=self.config.auth.phone_otp_min_length,
            max_length=self.config.auth.phone_otp_max_length,
            code_already_sent=code_already_sent,
            on_success=self.session.mark_phone_verified,
        )

    def forgot_password(self, email: str = "") -> ForgotPasswordFlow:
        return ForgotPasswordFlow(self.gateway, email=email)

    def password_reset(self, url: str) -> PasswordResetFlow:
        """Reset flow for the reset link the user opened."""
        return PasswordResetFlow.from_url(
            self.gateway,
            self.context.navigator,
            url,
            min_length=self.config.auth.password_min_length,
            redirect_delay=self.config.auth.reset_redirect_delay_seconds,
        )
