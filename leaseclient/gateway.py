"""
Auth gateway.

The one path through which the application issues API calls. Attaches the
stored access token and handles the 401 → refresh → replay protocol so
feature code never sees a raw authorization failure.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .credential_store import CredentialStore
from .errors import ApiError, RefreshFailed, SessionExpired
from .navigation import Navigator
from .refresh import RefreshCoordinator
from .schemas import extract_message, read_json
from .transport import RequestSpec, Transport

logger = logging.getLogger(__name__)

# A logical request is sent at most this many times
MAX_ATTEMPTS = 2


class AuthGateway:
    """
    Authenticated request pipeline.

    Usage:
        gateway = AuthGateway(transport, store, refresher, navigator)
        response = await gateway.request(RequestSpec("GET", "/properties"))
    """

    def __init__(
        self,
        transport: Transport,
        store: CredentialStore,
        refresher: RefreshCoordinator,
        navigator: Navigator
    ):
        self.transport = transport
        self.store = store
        self.refresher = refresher
        self.navigator = navigator

    def _auth_headers(self, token: Optional[str]) -> Dict[str, str]:
        if not token:
            return {}
        return {"authorization": f"Bearer {token}"}

    async def request(self, spec: RequestSpec) -> httpx.Response:
        """
        Send a request, renewing the access token once on 401.

        Returns:
            The 2xx response

        Raises:
            ApiError: Non-2xx response (including a 401 on the replay)
            TransportError: No response received
            SessionExpired: Token renewal failed; credentials were cleared
                and a redirect to login was requested
        """
        token = self.store.get().access_token
        response = await self.transport.send(spec, self._auth_headers(token))

        if (
            response.status_code == 401
            and spec.refresh_on_unauthorized
            and spec.attempt + 1 < MAX_ATTEMPTS
        ):
            logger.info(f"401 on {spec.path}, attempting token refresh")
            try:
                new_token = await self.refresher.renew(token)
            except RefreshFailed as e:
                self._expire_session()
                raise SessionExpired("Your session has expired. Please log in again.") from e

            retry = spec.next_attempt()
            logger.info(f"Retrying {spec.path} with refreshed token")
            response = await self.transport.send(retry, self._auth_headers(new_token))

        if not response.is_success:
            raise ApiError(
                response.status_code,
                extract_message(response),
                read_json(response),
            )
        return response

    def _expire_session(self):
        logger.warning("Token refresh failed, session expired")
        if self.store.get().is_authenticated:
            # A live session is ending; a redirect still pending belongs to an earlier one
            self.navigator.settle()
        self.store.clear()
        self.navigator.redirect_to_login()

    # Convenience wrappers

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return await self.request(RequestSpec("GET", path, params=params))

    async def post(self, path: str, json: Optional[Any] = None, **kwargs) -> httpx.Response:
        return await self.request(RequestSpec("POST", path, json=json, **kwargs))

    async def put(self, path: str, json: Optional[Any] = None) -> httpx.Response:
        return await self.request(RequestSpec("PUT", path, json=json))

    async def delete(self, path: str) -> httpx.Response:
        return await self.request(RequestSpec("DELETE", path))
