"""Numeric-code flows: email verification and phone OTP."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..auth.password import digits_only
from ..errors import CodeTooShort, ValidationError
from ..gateway import AuthGateway
from ..transport import RequestSpec
from .base import (
    ChallengeFlow,
    ChallengeKind,
    ChallengeState,
    ChallengeStatus,
    SendState,
    SendStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodeRules:
    """Accepted shape of a typed code."""
    min_length: int
    max_length: int

    @property
    def exact(self) -> bool:
        return self.min_length == self.max_length

    def check(self, code: str) -> Optional[ValidationError]:
        if len(code) < self.min_length:
            return CodeTooShort(self.min_length, exact=self.exact)
        return None


class CodePhase(str, Enum):
    # Waiting for the user to ask the server to dispatch a code
    REQUEST = "request"
    # Code dispatched; waiting for the user to enter it
    VERIFY = "verify"
    DONE = "done"


class CodeChallengeFlow(ChallengeFlow):
    """
    Flow whose proof is a short numeric code typed by the user.

    Input is sanitized as it is typed: non-digits are dropped and the code
    is capped at the rule's maximum length.
    """

    def __init__(
        self,
        gateway: AuthGateway,
        rules: CodeRules,
        target: str = "",
        initial_phase: CodePhase = CodePhase.VERIFY,
        on_success: Optional[Callable[[], None]] = None
    ):
        super().__init__(gateway, target=target, on_success=on_success)
        self.rules = rules
        self.phase = initial_phase
        self.code = ""

    @property
    def secret(self) -> str:
        return self.code

    def enter_code(self, text: str) -> str:
        """Store the typed code, keeping digits only."""
        if self._alive:
            self.code = digits_only(text, self.rules.max_length)
        return self.code

    @property
    def can_submit(self) -> bool:
        """Whether the submit action should be enabled."""
        return (
            self.phase == CodePhase.VERIFY
            and self.state.status != ChallengeStatus.SUBMITTING
            and not self.state.is_terminal
            and self.rules.check(self.code) is None
        )

    def _verify_spec(self) -> RequestSpec:
        raise NotImplementedError

    def _extra_check(self) -> Optional[ValidationError]:
        return None

    async def verify(self) -> ChallengeState:
        """Submit the entered code."""
        if not self._can_submit():
            return self.state
        if self.phase != CodePhase.VERIFY:
            logger.debug(f"{self.kind.value}: verify called before a code was sent")
            return self.state

        error = self._extra_check() or self.rules.check(self.code)
        if error:
            return self._reject(error)

        state = await self._submit(self._verify_spec())
        if state.status == ChallengeStatus.SUCCEEDED:
            self.phase = CodePhase.DONE
        return state


class EmailVerificationFlow(CodeChallengeFlow):
    """
    Email address verification with a 6-digit code.

    The code is issued by the server at registration, so the flow starts in
    the verify phase. resend() asks for a new code and is tracked in its own
    SendState: a failed resend leaves the code the user already has usable
    and never touches the main state.
    """

    kind = ChallengeKind.EMAIL_CODE
    fallback_message = "Verification failed"
    resend_fallback_message = "Failed to resend"

    def __init__(
        self,
        gateway: AuthGateway,
        email: str = "",
        code_length: int = 6,
        on_success: Optional[Callable[[], None]] = None
    ):
        super().__init__(
            gateway,
            CodeRules(min_length=code_length, max_length=code_length),
            target=(email or "").strip(),
            initial_phase=CodePhase.VERIFY,
            on_success=on_success,
        )
        self.resend_state = SendState()

    @property
    def email(self) -> str:
        return self.target

    def set_email(self, email: str):
        if self._alive:
            self.target = (email or "").strip()

    def _extra_check(self) -> Optional[ValidationError]:
        if not self.target:
            return ValidationError("Email is required")
        return None

    def _verify_spec(self) -> RequestSpec:
        return RequestSpec("POST", "/auth/verify-email", json={"email": self.target, "code": self.code})

    def _set_resend_state(self, state: SendState):
        if self._alive:
            self.resend_state = state
            self._notify()

    async def resend(self) -> SendState:
        """Request a new verification code."""
        if not self._alive or not self.target:
            return self.resend_state
        if self.resend_state.status == SendStatus.SENDING:
            return self.resend_state
        if self.state.status == ChallengeStatus.SUCCEEDED:
            return self.resend_state

        self._set_resend_state(SendState(SendStatus.SENDING))
        error = await self._exchange(
            RequestSpec("POST", "/auth/resend-verification", json={"email": self.target})
        )

        if error is None:
            logger.info("Verification code resent")
            self._set_resend_state(SendState(SendStatus.SENT))
        else:
            self._set_resend_state(SendState(SendStatus.FAILED, self._describe(error, self.resend_fallback_message)))
        return self.resend_state


class PhoneOtpFlow(CodeChallengeFlow):
    """
    Phone verification: explicit send, then verify.

    The phone number is the one on the signed-in account, so requests carry
    no target. Sending uses the main state machine: a failed send is shown
    as Failed in the request phase; a successful send moves to the verify
    phase and back to Idle.
    """

    kind = ChallengeKind.PHONE_OTP
    fallback_message = "Invalid OTP code"
    send_fallback_message = "Failed to send OTP"

    def __init__(
        self,
        gateway: AuthGateway,
        min_length: int = 4,
        max_length: int = 6,
        code_already_sent: bool = False,
        on_success: Optional[Callable[[], None]] = None
    ):
        super().__init__(
            gateway,
            CodeRules(min_length=min_length, max_length=max_length),
            initial_phase=CodePhase.VERIFY if code_already_sent else CodePhase.REQUEST,
            on_success=on_success,
        )

    def _verify_spec(self) -> RequestSpec:
        return RequestSpec("POST", "/auth/verify-otp", json={"code": self.code})

    async def send(self) -> ChallengeState:
        """Ask the server to dispatch an OTP. Also used to resend from the verify phase."""
        if not self._can_submit() or self.phase == CodePhase.DONE:
            return self.state

        self.code = ""
        self._set_state(ChallengeState(ChallengeStatus.SUBMITTING))
        error = await self._exchange(RequestSpec("POST", "/auth/send-otp"))

        if not self._alive:
            return self.state

        if error is not None:
            return self._fail(error, self.send_fallback_message)

        logger.info("OTP dispatched")
        self.last_error = None
        self.phase = CodePhase.VERIFY
        self._set_state(ChallengeState(ChallengeStatus.IDLE))
        return self.state
