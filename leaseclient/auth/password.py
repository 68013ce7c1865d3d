"""
Password and verification-code input helpers.

Pure functions only: nothing here touches the network or stored credentials.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import PasswordMismatch, PasswordTooShort, ValidationError

logger = logging.getLogger(__name__)

# Minimum length accepted by the server for a new password
MIN_PASSWORD_LENGTH = 8

# Below this a password is shown as weak regardless of its content
MEDIUM_PASSWORD_LENGTH = 6


class PasswordStrength(str, Enum):
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"


def classify_strength(password: str) -> PasswordStrength:
    """
    Classify a password for UI feedback.

    Strong requires at least 8 characters, an ASCII upper-case letter and an
    ASCII digit.
    Otherwise 6+ characters is medium and anything shorter is weak. The result
    never blocks submission on its own.

    Args:
        password: Candidate password

    Returns:
        PasswordStrength
    """
    password = password or ""
    # ASCII classes only, matching what the server accepts
    has_upper = any("A" <= c <= "Z" for c in password)
    has_digit = any("0" <= c <= "9" for c in password)

    if len(password) >= MIN_PASSWORD_LENGTH and has_upper and has_digit:
        return PasswordStrength.STRONG
    if len(password) >= MEDIUM_PASSWORD_LENGTH:
        return PasswordStrength.MEDIUM
    return PasswordStrength.WEAK


def validate_new_password(
    password: str,
    confirmation: str,
    min_length: int = MIN_PASSWORD_LENGTH
) -> Optional[ValidationError]:
    """
    Check a new password before it is submitted.

    The confirmation check runs first, so a short mismatched pair reports
    the mismatch.

    Args:
        password: New password
        confirmation: Repeated password
        min_length: Minimum accepted length

    Returns:
        None when the pair is acceptable, otherwise the rejection
        (PasswordMismatch or PasswordTooShort)
    """
    if password != confirmation:
        return PasswordMismatch()
    if len(password or "") < min_length:
        return PasswordTooShort(min_length)
    return None


def digits_only(text: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Strip everything but ASCII digits from typed input.

    Examples:
        digits_only("12a34b") -> "1234"
        digits_only("123-456-789", max_length=6) -> "123456"
    """
    if not text:
        return ""

    cleaned = "".join(c for c in text if "0" <= c <= "9")
    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned


@dataclass
class PasswordCandidate:
    """New password being typed in the reset form. Never persisted."""
    password: str = ""
    confirmation: str = ""

    @property
    def strength(self) -> PasswordStrength:
        return classify_strength(self.password)

    @property
    def confirmation_mismatch(self) -> bool:
        """True once something was typed in the confirmation and it differs."""
        return bool(self.confirmation) and self.confirmation != self.password

    def validate(self, min_length: int = MIN_PASSWORD_LENGTH) -> Optional[ValidationError]:
        return validate_new_password(self.password, self.confirmation, min_length)
