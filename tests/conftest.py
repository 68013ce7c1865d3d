"""
Pytest configuration and shared fixtures.

This module provides common fixtures for testing:
- Identities and credential stores
- A scripted fake backend behind httpx.MockTransport
- Client contexts wired to either the fake or the FastAPI stub backend
"""

import asyncio
import sys
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional, Tuple

import httpx
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from leaseclient.config import Config
from leaseclient.credential_store import FileCredentialStore, MemoryCredentialStore, Role, UserIdentity
from leaseclient.services import ServiceContext


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture(scope="session")
def test_config():
    """Test configuration values."""
    return {
        "email": "tenant@example.com",
        "password": "Abcdefg1",
        "access_token": "access-token-1",
        "base_url": "http://test",
    }


@pytest.fixture
def client_config() -> Config:
    """Client config with a short reset redirect delay."""
    config = Config()
    config.api.base_url = "http://test"
    config.auth.refresh_single_flight = True
    config.auth.reset_redirect_delay_seconds = 0.01
    return config


# =============================================================================
# Credential Fixtures
# =============================================================================

@pytest.fixture
def identity(test_config) -> UserIdentity:
    return UserIdentity(
        id="user-123",
        name="Tina Tenant",
        role=Role.TENANT,
        email=test_config["email"],
        is_verified=True,
    )


@pytest.fixture
def memory_store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def signed_in_store(identity, test_config) -> MemoryCredentialStore:
    return MemoryCredentialStore(test_config["access_token"], identity)


class FullDiskStore(MemoryCredentialStore):
    """Memory store whose writes fail once someone is signed in."""

    def set(self, token: str, identity: UserIdentity):
        if self.get().is_authenticated:
            raise OSError(28, "No space left on device")
        super().set(token, identity)


@pytest.fixture
def full_disk_store(identity, test_config) -> FullDiskStore:
    return FullDiskStore(test_config["access_token"], identity)


@pytest.fixture
def temp_credentials_file() -> Generator[Path, None, None]:
    """Path inside a temporary directory; the file itself does not exist yet."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir) / "credentials.json"


@pytest.fixture
def file_store(temp_credentials_file) -> FileCredentialStore:
    return FileCredentialStore(file_path=temp_credentials_file)


# =============================================================================
# Scripted backend
# =============================================================================

class FakeBackend:
    """
    Scripted responses for httpx.MockTransport.

    Each route holds a queue of (status, body) pairs; the last one repeats.
    A route may also be a (sync or async) callable taking the request. Every request is
    recorded with its Authorization header.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], list] = {}
        self.requests: List[httpx.Request] = []
        # Yield to the event loop before answering so concurrent calls interleave
        self.yield_before_response = True

    def add(self, method: str, path: str, *responses):
        self.routes[(method, path)] = list(responses)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def auth_headers(self, method: str, path: str) -> List[Optional[str]]:
        return [r.headers.get("authorization") for r in self.calls(method, path)]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.yield_before_response:
            await asyncio.sleep(0)

        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "Not found"})

        entry = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(entry, Exception):
            raise entry
        if callable(entry):
            result = entry(request)
            if asyncio.iscoroutine(result):
                result = await result
            return result

        status, body = entry
        return httpx.Response(status, json=body)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def bearer_route():
    """Route answering 200 for a bearer token in `valid` and 401 otherwise."""
    def _route(valid: set, body: dict) -> Callable[[httpx.Request], httpx.Response]:
        def route(request: httpx.Request) -> httpx.Response:
            header = request.headers.get("authorization", "")
            if header.startswith("Bearer ") and header[len("Bearer "):] in valid:
                return httpx.Response(200, json=body)
            return httpx.Response(401, json={"message": "Not authorized, token failed"})
        return route
    return _route


@pytest.fixture
def navigations() -> List[str]:
    return []


@pytest.fixture
def make_context(client_config, backend, navigations):
    """Build a ServiceContext talking to the scripted backend."""
    def _make(store=None, single_flight: bool = True) -> ServiceContext:
        client_config.auth.refresh_single_flight = single_flight
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(backend.handler),
            base_url=client_config.api.base_url,
        )
        return ServiceContext.create(
            client_config,
            store=store if store is not None else MemoryCredentialStore(),
            client=client,
            on_navigate=navigations.append,
        )
    return _make


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test against the stub backend"
    )
