"""
Verification flows.

One state machine (ChallengeFlow) parameterized per kind:
- EmailVerificationFlow: 6-digit email code, with an independent resend
- PhoneOtpFlow: explicit send, then a 4-6 digit OTP
- PasswordResetFlow: reset-link token plus a new password
- ForgotPasswordFlow: request a reset link
"""

from .base import (
    Challenge,
    ChallengeFlow,
    ChallengeKind,
    ChallengeState,
    ChallengeStatus,
    SendState,
    SendStatus,
)
from .codes import CodeChallengeFlow, CodePhase, CodeRules, EmailVerificationFlow, PhoneOtpFlow
from .password_reset import ForgotPasswordFlow, PasswordResetFlow

__all__ = [
    "Challenge",
    "ChallengeFlow",
    "ChallengeKind",
    "ChallengeState",
    "ChallengeStatus",
    "SendState",
    "SendStatus",
    "CodeChallengeFlow",
    "CodePhase",
    "CodeRules",
    "EmailVerificationFlow",
    "PhoneOtpFlow",
    "ForgotPasswordFlow",
    "PasswordResetFlow",
]
