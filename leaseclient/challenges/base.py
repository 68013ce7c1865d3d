"""
Verification flow template.

A flow drives one "request a code/link → submit proof" exchange and exposes
its state to the view hosting it:

    Idle → Submitting → Succeeded | Failed(reason)

Failed is recoverable (the user edits the input and submits again);
Succeeded is terminal. A flow never raises past its public methods: every
outcome lands in one of its states.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from ..errors import ApiError, ChallengeRejected, LeaseClientError, SessionExpired, ValidationError
from ..gateway import AuthGateway
from ..transport import RequestSpec

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong"


class ChallengeKind(str, Enum):
    EMAIL_CODE = "email_code"
    PHONE_OTP = "phone_otp"
    PASSWORD_RESET = "password_reset"
    FORGOT_PASSWORD = "forgot_password"


class ChallengeStatus(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    # Password reset opened without a token; nothing can be submitted
    INVALID_LINK = "invalid_link"


class SendStatus(str, Enum):
    """State of a code (re)issue request, tracked apart from the main flow."""
    IDLE = "idle"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class ChallengeState:
    status: ChallengeStatus = ChallengeStatus.IDLE
    reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ChallengeStatus.SUCCEEDED, ChallengeStatus.INVALID_LINK)


@dataclass(frozen=True)
class SendState:
    status: SendStatus = SendStatus.IDLE
    reason: Optional[str] = None


@dataclass(frozen=True)
class Challenge:
    """Snapshot of an in-flight verification exchange."""
    kind: ChallengeKind
    target: str
    secret: str
    state: ChallengeState


class ChallengeFlow:
    """
    Base class for verification flows.

    Subclasses build the request for a submission and may validate input
    first; this class owns the state transitions, error mapping and the
    liveness guard for completions that arrive after dispose().
    """

    kind: ChallengeKind
    fallback_message: str = GENERIC_FAILURE

    def __init__(self, gateway: AuthGateway, target: str = "", on_success: Optional[Callable[[], None]] = None):
        self.gateway = gateway
        self.target = target
        self.state = ChallengeState()
        # Typed failure behind the current Failed reason, None otherwise
        self.last_error: Optional[LeaseClientError] = None
        self._on_success = on_success
        self._listeners: List[Callable[["ChallengeFlow"], None]] = []
        self._alive = True

    # View lifecycle

    @property
    def alive(self) -> bool:
        return self._alive

    def dispose(self):
        """The hosting view was left; late completions become no-ops."""
        self._alive = False
        self._listeners.clear()

    def subscribe(self, listener: Callable[["ChallengeFlow"], None]):
        self._listeners.append(listener)

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    def _set_state(self, state: ChallengeState):
        if not self._alive:
            return
        self.state = state
        self._notify()

    @property
    def secret(self) -> str:
        return ""

    @property
    def challenge(self) -> Challenge:
        return Challenge(kind=self.kind, target=self.target, secret=self.secret, state=self.state)

    # Transitions

    def _reject(self, error: ValidationError) -> ChallengeState:
        """Local rejection; no request is made."""
        self.last_error = error
        self._set_state(ChallengeState(ChallengeStatus.FAILED, str(error)))
        return self.state

    def _can_submit(self) -> bool:
        if not self._alive:
            return False
        if self.state.is_terminal:
            logger.debug(f"{self.kind.value}: ignoring submit in {self.state.status.value} state")
            return False
        if self.state.status == ChallengeStatus.SUBMITTING:
            logger.debug(f"{self.kind.value}: submit already in flight")
            return False
        return True

    async def _exchange(self, spec: RequestSpec) -> Optional[LeaseClientError]:
        """
        Run one request.

        Returns:
            None on success, otherwise the typed failure. A 4xx answer is
            reported as ChallengeRejected.
        """
        try:
            await self.gateway.request(spec)
        except SessionExpired as e:
            return e
        except ApiError as e:
            logger.info(f"{self.kind.value}: server rejected {spec.path} ({e.status_code})")
            if 400 <= e.status_code < 500:
                return ChallengeRejected(e.status_code, e.message, e.payload)
            return e
        except LeaseClientError as e:
            logger.warning(f"{self.kind.value}: {spec.path} failed: {e}")
            return e
        return None

    def _describe(self, error: LeaseClientError, fallback: Optional[str] = None) -> str:
        """User-facing reason: the server message when there is one."""
        if isinstance(error, SessionExpired):
            return str(error)
        if isinstance(error, ApiError) and error.message:
            return error.message
        return fallback or self.fallback_message

    def _fail(self, error: LeaseClientError, fallback: Optional[str] = None) -> ChallengeState:
        self.last_error = error
        self._set_state(ChallengeState(ChallengeStatus.FAILED, self._describe(error, fallback)))
        return self.state

    async def _submit(self, spec: RequestSpec, fallback: Optional[str] = None) -> ChallengeState:
        """Idle/Failed → Submitting → Succeeded/Failed."""
        self._set_state(ChallengeState(ChallengeStatus.SUBMITTING))

        error = await self._exchange(spec)

        if not self._alive:
            logger.debug(f"{self.kind.value}: completion after dispose dropped")
            return self.state

        if error is not None:
            return self._fail(error, fallback)

        self.last_error = None
        self._set_state(ChallengeState(ChallengeStatus.SUCCEEDED))
        logger.info(f"{self.kind.value}: challenge succeeded")
        self._succeeded()
        return self.state

    def _succeeded(self):
        if self._on_success:
            self._on_success()
