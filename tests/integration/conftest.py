"""
Pytest configuration for tests against the stub backend.

The client talks to a FastAPI app over httpx.ASGITransport, so cookies,
headers and JSON bodies go through the real HTTP machinery.
"""

import httpx
import pytest

from leaseclient.credential_store import MemoryCredentialStore
from leaseclient.services import ServiceContext, create_services

from stub_backend import StubState, StubUser, create_app

STUB_BASE_URL = "http://testserver/api"


@pytest.fixture
def stub_state() -> StubState:
    state = StubState()
    state.add_user(StubUser(
        id="user-123",
        name="Tina Tenant",
        email="tenant@example.com",
        password="Abcdefg1",
    ))
    return state


@pytest.fixture
def stub_app(stub_state):
    """Create the FastAPI stub backend."""
    return create_app(stub_state)


@pytest.fixture
def stub_services(stub_app, client_config, navigations):
    """
    (context, session, verification) wired to the stub backend.

    Each test gets a fresh in-memory store and cookie jar.
    """
    client_config.api.base_url = STUB_BASE_URL
    client = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=stub_app),
        base_url=STUB_BASE_URL,
    )
    context = ServiceContext.create(
        client_config,
        store=MemoryCredentialStore(),
        client=client,
        on_navigate=navigations.append,
    )
    return create_services(context)
