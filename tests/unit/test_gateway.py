"""
Unit tests for the auth gateway.

Tests token attachment, the single replay after a 401 and the forced logout
when renewal fails.
"""

import asyncio

import httpx
import pytest

from leaseclient.credential_store import Credential
from leaseclient.errors import ApiError, SessionExpired, TransportError
from leaseclient.services import SessionService
from leaseclient.transport import RequestSpec


class TestTokenAttachment:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bearer_attached_when_signed_in(self, make_context, backend, signed_in_store, test_config):
        backend.add("GET", "/properties", (200, []))
        context = make_context(signed_in_store)

        await context.gateway.get("/properties")

        assert backend.auth_headers("GET", "/properties") == [f"Bearer {test_config['access_token']}"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nothing_attached_when_signed_out(self, make_context, backend):
        backend.add("GET", "/listings", (200, []))
        context = make_context()

        await context.gateway.get("/listings")

        assert backend.auth_headers("GET", "/listings") == [None]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_token_read_on_every_request(self, make_context, backend, signed_in_store, identity):
        backend.add("GET", "/properties", (200, []))
        context = make_context(signed_in_store)

        await context.gateway.get("/properties")
        signed_in_store.set("other-token", identity)
        await context.gateway.get("/properties")

        assert backend.auth_headers("GET", "/properties")[-1] == "Bearer other-token"


class TestFailurePassThrough:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_401_error_passed_through(self, make_context, backend, signed_in_store):
        backend.add("POST", "/properties", (400, {"message": "Title is required"}))
        context = make_context(signed_in_store)

        with pytest.raises(ApiError) as exc_info:
            await context.gateway.post("/properties", json={})

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Title is required"
        assert backend.calls("POST", "/auth/refresh") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_403_does_not_refresh(self, make_context, backend, signed_in_store):
        backend.add("GET", "/admin/users", (403, {"message": "Forbidden"}))
        context = make_context(signed_in_store)

        with pytest.raises(ApiError) as exc_info:
            await context.gateway.get("/admin/users")

        assert exc_info.value.status_code == 403
        assert backend.calls("POST", "/auth/refresh") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_error_passed_through(self, make_context, backend, signed_in_store):
        backend.add("GET", "/properties", httpx.ConnectError("connection refused"))
        context = make_context(signed_in_store)

        with pytest.raises(TransportError):
            await context.gateway.get("/properties")

        assert signed_in_store.get().is_authenticated

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_without_json_body(self, make_context, backend, signed_in_store):
        backend.add("GET", "/properties", lambda request: httpx.Response(502, text="Bad Gateway"))
        context = make_context(signed_in_store)

        with pytest.raises(ApiError) as exc_info:
            await context.gateway.get("/properties")

        assert exc_info.value.status_code == 502
        assert exc_info.value.message is None


class TestRefreshAndReplay:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_replays_once_with_new_token(self, make_context, backend, signed_in_store, identity):
        backend.add("GET", "/properties", (401, {"message": "Token expired"}), (200, [{"id": 1}]))
        backend.add("POST", "/auth/refresh", (200, {"token": "access-token-2"}))
        context = make_context(signed_in_store)

        response = await context.gateway.get("/properties")

        assert response.json() == [{"id": 1}]
        assert backend.auth_headers("GET", "/properties") == [
            "Bearer access-token-1",
            "Bearer access-token-2",
        ]
        assert len(backend.calls("POST", "/auth/refresh")) == 1
        assert signed_in_store.get() == Credential("access-token-2", identity)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_never_sent_a_third_time(self, make_context, backend, signed_in_store, navigations):
        backend.add("GET", "/properties", (401, {"message": "Token expired"}))
        backend.add("POST", "/auth/refresh", (200, {"token": "access-token-2"}))
        context = make_context(signed_in_store)

        with pytest.raises(ApiError) as exc_info:
            await context.gateway.get("/properties")

        assert exc_info.value.status_code == 401
        assert len(backend.calls("GET", "/properties")) == 2
        assert len(backend.calls("POST", "/auth/refresh")) == 1
        # Refresh itself worked, so the session is kept
        assert signed_in_store.get().access_token == "access-token-2"
        assert navigations == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_replay_failure_returned_as_is(self, make_context, backend, signed_in_store):
        backend.add("DELETE", "/properties/7", (401, {}), (404, {"message": "Property not found"}))
        backend.add("POST", "/auth/refresh", (200, {"token": "access-token-2"}))
        context = make_context(signed_in_store)

        with pytest.raises(ApiError) as exc_info:
            await context.gateway.delete("/properties/7")

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Property not found"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refresh_request_carries_no_body_or_bearer(self, make_context, backend, signed_in_store):
        backend.add("GET", "/properties", (401, {}), (200, []))
        backend.add("POST", "/auth/refresh", (200, {"token": "access-token-2"}))
        context = make_context(signed_in_store)

        await context.gateway.get("/properties")

        refresh = backend.calls("POST", "/auth/refresh")[0]
        assert refresh.content == b""
        assert "authorization" not in refresh.headers

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_spec_is_a_new_object(self, make_context, backend, signed_in_store):
        backend.add("GET", "/properties", (401, {}), (200, []))
        backend.add("POST", "/auth/refresh", (200, {"token": "access-token-2"}))
        context = make_context(signed_in_store)
        spec = RequestSpec("GET", "/properties")

        await context.gateway.request(spec)

        assert spec.attempt == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_opt_out_of_refresh(self, make_context, backend, signed_in_store):
        backend.add("POST", "/auth/login", (401, {"message": "Invalid email or password"}))
        context = make_context(signed_in_store)

        with pytest.raises(ApiError) as exc_info:
            await context.gateway.post("/auth/login", json={}, refresh_on_unauthorized=False)

        assert exc_info.value.message == "Invalid email or password"
        assert backend.calls("POST", "/auth/refresh") == []


class TestRefreshFailure:

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("refresh_response", [
        (401, {"message": "Refresh token expired, please log in again"}),
        (500, {"message": "boom"}),
        (200, {"unexpected": True}),
        httpx.ConnectError("connection refused"),
    ])
    async def test_clears_store_and_redirects_once(
        self, make_context, backend, signed_in_store, navigations, refresh_response
    ):
        backend.add("GET", "/properties", (401, {}))
        backend.add("POST", "/auth/refresh", refresh_response)
        context = make_context(signed_in_store)

        with pytest.raises(SessionExpired):
            await context.gateway.get("/properties")

        credential = signed_in_store.get()
        assert credential.access_token is None
        assert credential.identity is None
        assert navigations == ["/login"]
        assert len(backend.calls("GET", "/properties")) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_signed_out_401_goes_to_login(self, make_context, backend, navigations):
        """With nobody signed in there is nothing to refresh."""
        backend.add("GET", "/dashboard", (401, {"message": "Not authorized, no token"}))
        context = make_context()

        with pytest.raises(SessionExpired):
            await context.gateway.get("/dashboard")

        assert backend.calls("POST", "/auth/refresh") == []
        assert navigations == ["/login"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_expiry_after_signing_in_again_redirects_again(
        self, make_context, backend, signed_in_store, identity, navigations
    ):
        backend.add("POST", "/auth/logout", (200, {"message": "Logged out"}))
        backend.add("GET", "/properties", (401, {}))
        backend.add("POST", "/auth/refresh", (401, {"message": "Refresh token expired, please log in again"}))
        context = make_context(signed_in_store)

        await SessionService(context).logout()
        signed_in_store.set("access-token-2", identity)

        with pytest.raises(SessionExpired):
            await context.gateway.get("/properties")

        assert navigations == ["/login", "/login"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unwritable_store_after_refresh_expires_session(
        self, make_context, backend, full_disk_store, navigations
    ):
        backend.add("GET", "/properties", (401, {}))
        backend.add("POST", "/auth/refresh", (200, {"token": "access-token-2"}))
        context = make_context(full_disk_store)

        with pytest.raises(SessionExpired):
            await context.gateway.get("/properties")

        assert full_disk_store.get() == Credential()
        assert navigations == ["/login"]
        assert len(backend.calls("GET", "/properties")) == 1


class TestConcurrentFailures:

    def _script(self, backend, bearer_route, valid):
        backend.add("GET", "/properties", bearer_route(valid, []))
        backend.add("GET", "/payments", bearer_route(valid, []))
        backend.add("GET", "/messages", bearer_route(valid, []))

        def refresh(request):
            valid.clear()
            valid.add("access-token-2")
            return httpx.Response(200, json={"token": "access-token-2"})
        backend.add("POST", "/auth/refresh", refresh)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_flight_shares_one_refresh(self, make_context, backend, bearer_route, signed_in_store):
        self._script(backend, bearer_route, set())
        context = make_context(signed_in_store, single_flight=True)

        results = await asyncio.gather(
            context.gateway.get("/properties"),
            context.gateway.get("/payments"),
            context.gateway.get("/messages"),
        )

        assert all(r.status_code == 200 for r in results)
        assert len(backend.calls("POST", "/auth/refresh")) == 1
        assert context.refresher.refresh_count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_without_single_flight_each_request_refreshes(
        self, make_context, backend, bearer_route, signed_in_store
    ):
        self._script(backend, bearer_route, set())
        context = make_context(signed_in_store, single_flight=False)

        results = await asyncio.gather(
            context.gateway.get("/properties"),
            context.gateway.get("/payments"),
            context.gateway.get("/messages"),
        )

        assert all(r.status_code == 200 for r in results)
        assert len(backend.calls("POST", "/auth/refresh")) == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_late_401_reuses_rotated_token(self, make_context, backend, bearer_route, signed_in_store):
        """A 401 for a token that was already replaced replays without refreshing again."""
        self._script(backend, bearer_route, set())
        context = make_context(signed_in_store, single_flight=True)

        await context.gateway.get("/properties")
        assert len(backend.calls("POST", "/auth/refresh")) == 1

        renewed = await context.refresher.renew("access-token-1")

        assert renewed == "access-token-2"
        assert len(backend.calls("POST", "/auth/refresh")) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_shared_refresh_failure_redirects_once(
        self, make_context, backend, bearer_route, signed_in_store, navigations
    ):
        backend.add("GET", "/properties", bearer_route(set(), []))
        backend.add("GET", "/payments", bearer_route(set(), []))
        backend.add("POST", "/auth/refresh", (401, {"message": "No refresh token"}))
        context = make_context(signed_in_store, single_flight=True)

        results = await asyncio.gather(
            context.gateway.get("/properties"),
            context.gateway.get("/payments"),
            return_exceptions=True,
        )

        assert all(isinstance(r, SessionExpired) for r in results)
        assert len(backend.calls("POST", "/auth/refresh")) == 1
        assert navigations == ["/login"]
        assert signed_in_store.get() == Credential()
