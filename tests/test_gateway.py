"""Tests for the backend gateway."""

import json

import httpx
import pytest

from ocm.core.errors import GatewayError, classify_error
from ocm.enums import ErrorKind
from ocm.schemas.auth import Session
from ocm.services.config_service import GatewayConfig
from ocm.services.gateway import Gateway
from ocm.services.session_service import MemoryStore, SessionStore


@pytest.mark.asyncio
async def test_rest_call_headers(gateway, backend):
    backend.rest("GET", "offboarding_cases", (200, [{"id": "c1"}]))

    payload = await gateway.list_offboarding_cases(org_id="org-1")

    assert payload == [{"id": "c1"}]
    [request] = backend.requests
    assert request.headers["apikey"] == "anon-test-key"
    assert request.headers["Authorization"] == "Bearer user-access-token"
    assert request.headers["Prefer"] == "return=representation"
    assert request.url.params["org_id"] == "eq.org-1"
    assert request.url.params["select"] == "*"
    assert "id" not in request.url.params


@pytest.mark.asyncio
async def test_anonymous_auth_call_uses_anon_key_as_bearer(gateway, backend):
    backend.auth("POST", "token", (200, {"access_token": "new-token"}))

    await gateway.sign_in_with_password("user@example.com", "pw")

    [request] = backend.requests
    assert request.headers["Authorization"] == "Bearer anon-test-key"
    assert request.url.params["grant_type"] == "password"
    assert json.loads(request.content) == {"email": "user@example.com", "password": "pw"}


@pytest.mark.asyncio
async def test_magic_link_body(gateway, backend):
    backend.auth("POST", "otp", (200, {}))

    await gateway.send_magic_link("user@example.com", "https://app.test/welcome")

    [request] = backend.requests
    assert json.loads(request.content) == {
        "email": "user@example.com",
        "create_user": True,
        "options": {"emailRedirectTo": "https://app.test/welcome"},
    }


@pytest.mark.asyncio
async def test_unauthorized_clears_session_and_notifies(backend, gateway_config, identity_factory):
    sessions = SessionStore(MemoryStore())
    sessions.save(Session(access_token="stale"))
    sessions.save_identity(identity_factory())
    notified = []
    backend.rest("GET", "offboarding_cases", (401, {"message": "JWT expired"}))

    async with Gateway(
        gateway_config, sessions, transport=backend.transport, on_unauthorized=lambda: notified.append(True)
    ) as client:
        with pytest.raises(GatewayError) as exc_info:
            await client.list_offboarding_cases()

    assert exc_info.value.status == 401
    assert classify_error(exc_info.value).message == "Session expired. Please log in again."
    assert sessions.load() is None
    assert sessions.load_identity() is None
    assert notified == [True]


@pytest.mark.asyncio
async def test_anonymous_401_keeps_session(gateway, backend, sessions):
    backend.auth("POST", "token", (401, {"error_description": "Invalid login credentials"}))

    with pytest.raises(GatewayError):
        await gateway.sign_in_with_password("user@example.com", "wrong")

    assert sessions.load() is not None


@pytest.mark.asyncio
async def test_authenticated_call_without_session_is_refused_locally(backend, gateway_config):
    async with Gateway(gateway_config, SessionStore(MemoryStore()), transport=backend.transport) as client:
        with pytest.raises(GatewayError) as exc_info:
            await client.list_tasks(case_id="c1")

    assert exc_info.value.status is None
    assert classify_error(exc_info.value).kind == ErrorKind.ACCESS_DENIED
    assert backend.requests == []


@pytest.mark.asyncio
async def test_empty_body_decodes_to_none(gateway, backend):
    backend.rpc("transition_offboarding_case_status", (204, None))

    assert await gateway.transition_case_status("c1", "submitted") is None


@pytest.mark.asyncio
async def test_malformed_success_body_raises(gateway, backend):
    backend.rest(
        "GET",
        "tasks",
        lambda request: httpx.Response(200, text="<html>", request=request),
    )

    with pytest.raises(GatewayError) as exc_info:
        await gateway.list_tasks(case_id="c1")

    assert exc_info.value.status == 200
    assert classify_error(exc_info.value).kind == ErrorKind.UNKNOWN


@pytest.mark.asyncio
async def test_timeout_is_network_error(gateway, backend):
    request = httpx.Request("GET", "https://gateway.test")
    backend.rest("GET", "audit_logs", httpx.ReadTimeout("slow", request=request))

    with pytest.raises(GatewayError) as exc_info:
        await gateway.list_audit_logs("c1")

    assert exc_info.value.transport is True
    assert classify_error(exc_info.value).kind == ErrorKind.NETWORK


@pytest.mark.asyncio
async def test_rpc_sends_named_parameters(gateway, backend):
    backend.rpc("owner_assign_case_reviewer", (200, [{"case_id": "c1", "reviewer_user_id": "u2"}]))

    await gateway.owner_assign_case_reviewer(case_id="c1", reviewer_user_id="u2")

    [request] = backend.rpc_calls("owner_assign_case_reviewer")
    assert json.loads(request.content) == {"p_case_id": "c1", "p_reviewer_user_id": "u2"}


def test_incomplete_config_is_rejected():
    with pytest.raises(ValueError):
        Gateway(GatewayConfig(base_url="https://gateway.test"))
    with pytest.raises(ValueError):
        Gateway(GatewayConfig(anon_key="key"))
