"""Forgot-password and reset-password flows."""

import asyncio
import logging
from typing import Callable, Optional

from ..auth.password import MIN_PASSWORD_LENGTH, PasswordCandidate, PasswordStrength
from ..errors import ValidationError
from ..gateway import AuthGateway
from ..navigation import Navigator, query_params
from ..transport import RequestSpec
from .base import ChallengeFlow, ChallengeKind, ChallengeState, ChallengeStatus

logger = logging.getLogger(__name__)

INVALID_LINK_MESSAGE = "This password reset link is invalid or missing a token. Request a new link."

DEFAULT_REDIRECT_DELAY = 3.0


class ForgotPasswordFlow(ChallengeFlow):
    """
    Request a reset link by email.

    The server acknowledges every address to avoid revealing which accounts
    exist, so any 2xx counts as success.
    """

    kind = ChallengeKind.FORGOT_PASSWORD
    fallback_message = "Something went wrong"

    def __init__(self, gateway: AuthGateway, email: str = ""):
        super().__init__(gateway, target=(email or "").strip())

    def set_email(self, email: str):
        if self._alive:
            self.target = (email or "").strip()

    async def submit(self) -> ChallengeState:
        if not self._can_submit():
            return self.state
        if not self.target:
            return self._reject(ValidationError("Email is required"))
        return await self._submit(RequestSpec("POST", "/auth/forgot-password", json={"email": self.target}))


class PasswordResetFlow(ChallengeFlow):
    """
    Set a new password using the opaque token from a reset link.

    Without a token the flow sits in INVALID_LINK for its whole life and
    never touches the network; the only way out is requesting a new link.
    Both the confirmation match and the minimum length are checked locally
    before submitting. After success a redirect to login is scheduled.
    """

    kind = ChallengeKind.PASSWORD_RESET
    fallback_message = "Reset failed. Link may have expired."

    def __init__(
        self,
        gateway: AuthGateway,
        navigator: Navigator,
        token: Optional[str],
        min_length: int = MIN_PASSWORD_LENGTH,
        redirect_delay: float = DEFAULT_REDIRECT_DELAY,
        on_success: Optional[Callable[[], None]] = None
    ):
        super().__init__(gateway, on_success=on_success)
        self.navigator = navigator
        self.token = token or None
        self.min_length = min_length
        self.redirect_delay = redirect_delay
        self.candidate = PasswordCandidate()
        self._redirect_handle: Optional[asyncio.TimerHandle] = None

        if self.token is None:
            logger.info("Password reset opened without a token")
            self.state = ChallengeState(ChallengeStatus.INVALID_LINK, INVALID_LINK_MESSAGE)

    @classmethod
    def from_url(cls, gateway: AuthGateway, navigator: Navigator, url: str, **kwargs) -> "PasswordResetFlow":
        """Create the flow from the URL the user opened (token in the `token` query parameter)."""
        return cls(gateway, navigator, query_params(url).get("token"), **kwargs)

    @property
    def secret(self) -> str:
        return self.token or ""

    # Form input

    def set_password(self, password: str):
        if self._alive:
            self.candidate.password = password or ""

    def set_confirmation(self, confirmation: str):
        if self._alive:
            self.candidate.confirmation = confirmation or ""

    @property
    def strength(self) -> PasswordStrength:
        return self.candidate.strength

    @property
    def can_submit(self) -> bool:
        return (
            self.state.status not in (ChallengeStatus.SUBMITTING, ChallengeStatus.SUCCEEDED, ChallengeStatus.INVALID_LINK)
            and not self.candidate.confirmation_mismatch
        )

    async def submit(self) -> ChallengeState:
        if not self._can_submit():
            return self.state

        error = self.candidate.validate(self.min_length)
        if error:
            return self._reject(error)

        return await self._submit(
            RequestSpec("POST", "/auth/reset-password", json={"token": self.token, "password": self.candidate.password})
        )

    def _succeeded(self):
        super()._succeeded()
        self._schedule_redirect()

    def _schedule_redirect(self):
        loop = asyncio.get_running_loop()
        self._redirect_handle = loop.call_later(self.redirect_delay, self._redirect_to_login)
        logger.debug(f"Redirect to login in {self.redirect_delay}s")

    def _redirect_to_login(self):
        self._redirect_handle = None
        if self._alive:
            self.navigator.redirect_to_login()

    @property
    def redirect_pending(self) -> bool:
        return self._redirect_handle is not None

    def dispose(self):
        if self._redirect_handle is not None:
            self._redirect_handle.cancel()
            self._redirect_handle = None
        super().dispose()
