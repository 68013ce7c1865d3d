"""
Credential validation helpers.

Password strength classification, new-password checks and code input
sanitizing shared by the verification flows.
"""

from .password import (
    MIN_PASSWORD_LENGTH,
    PasswordCandidate,
    PasswordStrength,
    classify_strength,
    digits_only,
    validate_new_password,
)

__all__ = [
    "MIN_PASSWORD_LENGTH",
    "PasswordCandidate",
    "PasswordStrength",
    "classify_strength",
    "digits_only",
    "validate_new_password",
]
