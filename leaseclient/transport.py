"""
HTTP transport.

Performs a single exchange with the backend. It knows nothing about tokens
or retries: it takes a fully described request plus headers and returns the
httpx response, or raises TransportError when no response was received.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestSpec:
    """
    Immutable description of one API call.

    `attempt` counts sends of the same logical request. The gateway derives
    the replay with next_attempt() instead of mutating the first send.
    """
    method: str
    path: str
    json: Optional[Any] = None
    params: Optional[Dict[str, Any]] = None
    attempt: int = 0
    # Login-style calls answer 401 for bad input, not for an expired token
    refresh_on_unauthorized: bool = True
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def next_attempt(self) -> "RequestSpec":
        return replace(self, attempt=self.attempt + 1)

    @property
    def is_retry(self) -> bool:
        return self.attempt > 0


class Transport:
    """Thin wrapper around httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the transport.

        Args:
            base_url: The API base URL
            timeout: Request timeout in seconds (ignored when client is given)
            client: Pre-built client, e.g. with a MockTransport in tests
        """
        self.base_url = base_url.rstrip("/")
        # Cookie jar on the client carries the HTTP-only refresh cookie
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    def _get_headers(self, extra: Optional[Dict[str, str]] = None) -> dict:
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def send(self, spec: RequestSpec, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        """
        Send one request.

        Raises:
            TransportError: On connection errors and timeouts
        """
        merged = dict(spec.extra_headers)
        if headers:
            merged.update(headers)

        try:
            response = await self._client.request(
                spec.method,
                spec.path,
                json=spec.json,
                params=spec.params,
                headers=self._get_headers(merged),
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout on {spec.method} {spec.path}")
            raise TransportError("Request timed out. Please try again.") from e
        except httpx.HTTPError as e:
            logger.warning(f"Connection error on {spec.method} {spec.path}: {type(e).__name__}")
            raise TransportError("Cannot connect to the server. Please check your connection.") from e

        logger.debug(f"{spec.method} {spec.path} -> {response.status_code}")
        return response

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()
