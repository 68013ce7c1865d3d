"""
Session service.

Sign-in, sign-out and the identity cache. Every call goes through the auth
gateway; login-style calls opt out of the refresh-on-401 path because there
a 401 means bad input, not an expired token.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ValidationError as SchemaError

from ..auth.password import digits_only
from ..credential_store import UserIdentity
from ..errors import ApiError, CodeTooShort, LeaseClientError, OAuthFailed, ValidationError
from ..navigation import query_params
from ..schemas import LoginResponse, PhoneNotVerifiedResponse, read_json
from ..transport import RequestSpec
from .base import BaseService, ServiceContext

logger = logging.getLogger(__name__)

EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
PHONE_NOT_VERIFIED = "PHONE_NOT_VERIFIED"

TWO_FACTOR_CODE_LENGTH = 6


class LoginOutcome(str, Enum):
    AUTHENTICATED = "authenticated"
    TWO_FACTOR_REQUIRED = "two_factor_required"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    PHONE_NOT_VERIFIED = "phone_not_verified"


@dataclass
class LoginResult:
    """Result of a login attempt that did not fail outright."""
    outcome: LoginOutcome
    identity: Optional[UserIdentity] = None
    email: Optional[str] = None
    otp_sent: bool = False

    @property
    def authenticated(self) -> bool:
        return self.outcome == LoginOutcome.AUTHENTICATED


@dataclass
class OAuthResult:
    identity: UserIdentity
    needs_profile_completion: bool


class SessionService(BaseService):
    """
    Service for the signed-in session.

    Handles:
    - Email/password login, including the unverified email/phone branches
    - Two-factor login completion
    - Google OAuth redirect completion
    - Logout
    """

    def __init__(self, context: ServiceContext):
        super().__init__(context)
        self._pending_two_factor_user: Optional[str] = None

    def current_identity(self) -> Optional[UserIdentity]:
        return self.store.get().identity

    def is_authenticated(self) -> bool:
        return self.store.get().is_authenticated

    @property
    def two_factor_pending(self) -> bool:
        return self._pending_two_factor_user is not None

    def _sign_in(self, token: str, identity: UserIdentity):
        """Store a new credential; the host has left the login page."""
        self.store.set(token, identity)
        self.context.navigator.settle()

    def _store_login(self, data: LoginResponse) -> UserIdentity:
        if not data.token:
            raise ApiError(200, "Login response missing token")
        try:
            identity = UserIdentity.from_dict(data.identity_dict())
        except ValueError as e:
            raise ApiError(200, f"Unexpected login response: {e}") from e
        self._sign_in(data.token, identity)
        logger.info(f"Signed in as {identity.id} ({identity.role.value})")
        return identity

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Sign in with email and password.

        Returns:
            LoginResult describing the next step

        Raises:
            ApiError: Credentials rejected or unexpected response
            TransportError: Backend unreachable
        """
        email = (email or "").strip()
        self._pending_two_factor_user = None

        try:
            response = await self.gateway.request(RequestSpec(
                "POST",
                "/auth/login",
                json={"email": email, "password": password},
                refresh_on_unauthorized=False,
            ))
        except ApiError as e:
            if e.status_code == 403 and e.message == EMAIL_NOT_VERIFIED:
                logger.info("Login blocked: email not verified")
                return LoginResult(LoginOutcome.EMAIL_NOT_VERIFIED, email=e.payload.get("email") or email)
            if e.status_code == 403 and e.message == PHONE_NOT_VERIFIED:
                return await self._phone_not_verified(email, e.payload)
            raise ApiError(e.status_code, e.message or "Login failed", e.payload) from e

        try:
            data = LoginResponse.model_validate(read_json(response))
        except SchemaError as e:
            raise ApiError(response.status_code, "Unexpected login response") from e

        if data.two_factor_enabled:
            logger.info("Login requires two-factor code")
            self._pending_two_factor_user = data.id
            return LoginResult(LoginOutcome.TWO_FACTOR_REQUIRED, email=email)

        identity = self._store_login(data)
        return LoginResult(LoginOutcome.AUTHENTICATED, identity=identity, email=email)

    async def _phone_not_verified(self, email: str, payload: dict) -> LoginResult:
        """Keep the temporary token so the OTP endpoints accept us, then dispatch an OTP."""
        try:
            data = PhoneNotVerifiedResponse.model_validate(payload)
        except SchemaError as e:
            raise ApiError(403, "Phone verification required but no session token was issued") from e

        # The server only returns a token here; the full profile arrives after verification
        self._sign_in(data.token, UserIdentity(id="", name=email, email=email))
        logger.info("Login blocked: phone not verified, sending OTP")

        otp_sent = True
        try:
            await self.gateway.request(RequestSpec("POST", "/auth/send-otp"))
        except LeaseClientError as e:
            logger.warning(f"Could not dispatch OTP after login: {e}")
            otp_sent = False

        return LoginResult(LoginOutcome.PHONE_NOT_VERIFIED, email=email, otp_sent=otp_sent)

    async def validate_two_factor(self, code: str) -> UserIdentity:
        """
        Finish a login that answered TWO_FACTOR_REQUIRED.

        Raises:
            ValidationError: No pending login or code too short
            ApiError: Code rejected
        """
        if self._pending_two_factor_user is None:
            raise ValidationError("No two-factor login in progress")

        code = digits_only(code, TWO_FACTOR_CODE_LENGTH)
        if len(code) < TWO_FACTOR_CODE_LENGTH:
            raise CodeTooShort(TWO_FACTOR_CODE_LENGTH, exact=True)

        try:
            response = await self.gateway.request(RequestSpec(
                "POST",
                "/auth/2fa/validate",
                json={"userId": self._pending_two_factor_user, "token": code},
                refresh_on_unauthorized=False,
            ))
        except ApiError as e:
            raise ApiError(e.status_code, e.message or "Invalid 2FA code", e.payload) from e

        try:
            data = LoginResponse.model_validate(read_json(response))
        except SchemaError as e:
            raise ApiError(response.status_code, "Unexpected 2FA response") from e

        identity = self._store_login(data)
        self._pending_two_factor_user = None
        return identity

    def complete_oauth(self, url: str) -> OAuthResult:
        """
        Store the credential carried by the OAuth success redirect.

        Raises:
            OAuthFailed: No token in the redirect, or an unusable identity
        """
        params = query_params(url)
        token = params.get("token")
        if not token:
            logger.warning("OAuth redirect without token")
            raise OAuthFailed("Google sign-in failed")

        try:
            identity = UserIdentity.from_dict({
                "_id": params.get("id"),
                "name": params.get("name"),
                "role": params.get("role"),
                "email": params.get("email"),
                "isPhoneVerified": params.get("isPhoneVerified") == "true",
            })
        except ValueError as e:
            raise OAuthFailed(f"Google sign-in returned an unknown role: {params.get('role')}") from e

        self._sign_in(token, identity)
        logger.info(f"Signed in via Google as {identity.id}")
        return OAuthResult(
            identity=identity,
            needs_profile_completion=params.get("profileComplete") != "true",
        )

    def mark_phone_verified(self):
        """Reflect a successful phone OTP in the cached identity."""
        credential = self.store.get()
        if credential.access_token and credential.identity:
            self.store.set(credential.access_token, credential.identity.with_phone_verified())

    async def logout(self):
        """
        Sign out.

        The server call only drops the refresh cookie; local credentials are
        cleared and login is requested even if it fails.
        """
        signed_in = self.is_authenticated()
        if signed_in:
            try:
                await self.gateway.request(RequestSpec("POST", "/auth/logout", refresh_on_unauthorized=False))
            except LeaseClientError as e:
                logger.warning(f"Server logout failed: {e}")

        self.store.clear()
        self._pending_two_factor_user = None
        logger.info("Signed out")
        if signed_in:
            self.context.navigator.settle()
        self.context.navigator.redirect_to_login()
