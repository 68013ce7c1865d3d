"""
Access token renewal.

Exchanges the refresh cookie (set by the backend as HTTP-only, never read
here) for a new access token.
"""

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from .credential_store import CredentialStore
from .errors import RefreshFailed, TransportError
from .schemas import TokenResponse, extract_message, read_json
from .transport import RequestSpec, Transport

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_PATH = "/auth/refresh"


class RefreshCoordinator:
    """
    Runs the silent re-authentication protocol.

    With single_flight enabled, requests that fail together share one refresh
    call and a request rejected with an already replaced token reuses the
    replacement. With it disabled every caller issues its own refresh call.
    """

    def __init__(
        self,
        transport: Transport,
        store: CredentialStore,
        refresh_path: str = DEFAULT_REFRESH_PATH,
        single_flight: bool = True
    ):
        self.transport = transport
        self.store = store
        self.refresh_path = refresh_path
        self.single_flight = single_flight
        self._inflight: Optional[asyncio.Task] = None
        self.refresh_count = 0

    async def renew(self, rejected_token: Optional[str]) -> str:
        """
        Get a usable token after `rejected_token` was answered with 401.

        Raises:
            RefreshFailed: If no new token could be obtained
        """
        if self.single_flight:
            current = self.store.get().access_token
            if current and current != rejected_token:
                logger.debug("Token already renewed by another request")
                return current
        return await self.refresh()

    async def refresh(self) -> str:
        """
        Obtain and store a new access token.

        Returns:
            The new access token

        Raises:
            RefreshFailed: On network error, non-2xx status or a malformed body
        """
        if not self.single_flight:
            return await self._refresh_once()

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._refresh_once())
            self._inflight.add_done_callback(_retrieve_failure)
        else:
            logger.debug("Joining in-flight token refresh")

        # Shield so a cancelled waiter does not cancel the shared refresh
        return await asyncio.shield(self._inflight)

    async def _refresh_once(self) -> str:
        if self.store.get().identity is None:
            raise RefreshFailed("No signed-in user to refresh")

        self.refresh_count += 1
        spec = RequestSpec("POST", self.refresh_path, refresh_on_unauthorized=False)

        try:
            response = await self.transport.send(spec)
        except TransportError as e:
            logger.warning(f"Token refresh failed: {e}")
            raise RefreshFailed(str(e)) from e

        if not response.is_success:
            message = extract_message(response) or f"HTTP {response.status_code}"
            logger.warning(f"Token refresh rejected: {message}")
            raise RefreshFailed(message)

        try:
            token = TokenResponse.model_validate(read_json(response)).token
        except ValidationError as e:
            logger.warning("Token refresh response missing token")
            raise RefreshFailed("Refresh response missing token") from e

        try:
            self.store.replace_token(token)
        except ValueError as e:
            # Logged out while the refresh was in flight
            raise RefreshFailed(str(e)) from e
        except OSError as e:
            logger.error(f"Could not save refreshed token: {e}")
            raise RefreshFailed(f"Could not save refreshed token: {e}") from e

        logger.info("Access token refreshed")
        return token


def _retrieve_failure(task: asyncio.Task):
    # Mark the failure as seen even when every waiter was cancelled
    if not task.cancelled():
        task.exception()
