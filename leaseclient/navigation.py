"""
Navigation hooks.

The client cannot render pages itself; it asks the host application to move
to another entry point through a Navigator.
"""

import logging
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

logger = logging.getLogger(__name__)


class Navigator:
    """
    Receives navigation requests from the client.

    A hard redirect tears down whatever the user was looking at, so once one
    is pending further requests for the same location are ignored until the
    host reports the new page as loaded with settle(). The client settles it
    itself whenever a session starts or a live session ends.
    """

    def __init__(self, login_path: str = "/login", on_navigate: Optional[Callable[[str], None]] = None):
        self.login_path = login_path
        self._on_navigate = on_navigate
        self.pending: Optional[str] = None
        self.history: List[str] = []

    def hard_redirect(self, location: str) -> bool:
        """
        Request a full navigation to `location`.

        Returns:
            True if the navigation was issued, False if it was already pending
        """
        if self.pending == location:
            logger.debug(f"Redirect to {location} already pending")
            return False

        self.pending = location
        self.history.append(location)
        logger.info(f"Redirecting to {location}")

        if self._on_navigate:
            self._on_navigate(location)
        return True

    def redirect_to_login(self) -> bool:
        return self.hard_redirect(self.login_path)

    def settle(self):
        """The host finished loading the pending location."""
        self.pending = None


def query_params(url: str) -> Dict[str, str]:
    """First value of every query parameter in `url`."""
    parsed = parse_qs(urlsplit(url or "").query, keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items() if values}
