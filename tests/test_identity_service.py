"""Tests for identity resolution."""

import httpx
import pytest

from ocm.enums import IdentityState, Role
from ocm.schemas.auth import AuthUser, OrgContext, Session
from ocm.services.identity_service import IdentityResolver, merge_identity
from ocm.services.session_service import IDENTITY_KEY, MemoryStore, SessionStore

ORG_CONTEXT_RPC = "get_current_org_context"
PROFILE = {"id": "u1", "email": "owner@example.com", "app_metadata": {}}


def _connect_error():
    return httpx.ConnectError("boom", request=httpx.Request("POST", "https://gateway.test"))


@pytest.mark.asyncio
async def test_resolves_role_from_membership(gateway, backend, sessions):
    backend.auth("GET", "user", (200, PROFILE))
    backend.rpc(ORG_CONTEXT_RPC, (200, [{"org_id": "org-1", "org_name": "Acme", "role": "owner"}]))

    result = await IdentityResolver(gateway, sessions).resolve_identity()

    assert result.state == IdentityState.RESOLVED
    assert result.identity.role == Role.OWNER
    assert result.identity.org_id == "org-1"
    assert result.identity.org_not_set is False
    assert result.membership_error is None
    assert sessions.load_identity() == result.identity


@pytest.mark.asyncio
async def test_membership_network_failure_keeps_profile(gateway, backend, sessions):
    backend.auth("GET", "user", (200, PROFILE))
    backend.rpc(ORG_CONTEXT_RPC, _connect_error())

    result = await IdentityResolver(gateway, sessions).resolve_identity()

    assert result.state == IdentityState.RESOLVED
    assert result.identity.email == "owner@example.com"
    assert result.identity.org_not_set is True
    assert result.identity.role == Role.UNKNOWN
    assert result.membership_error


@pytest.mark.asyncio
async def test_membership_error_row_is_treated_as_failure(gateway, backend, sessions):
    backend.auth("GET", "user", (200, PROFILE))
    backend.rpc(ORG_CONTEXT_RPC, (200, [{"error_code": "P0001", "error_message": "Access denied"}]))

    result = await IdentityResolver(gateway, sessions).resolve_identity()

    assert result.identity.org_not_set is True
    assert result.membership_error == "Access denied."


@pytest.mark.asyncio
async def test_unknown_role_string_maps_to_unknown(gateway, backend, sessions):
    backend.auth("GET", "user", (200, PROFILE))
    backend.rpc(ORG_CONTEXT_RPC, (200, [{"org_id": "org-1", "role": "superuser"}]))

    result = await IdentityResolver(gateway, sessions).resolve_identity()

    assert result.identity.role == Role.UNKNOWN
    assert result.identity.org_not_set is False


@pytest.mark.asyncio
async def test_role_is_never_taken_from_profile_metadata(gateway, backend, sessions):
    profile = {**PROFILE, "user_metadata": {"role": "owner"}, "app_metadata": {"role": "owner"}}
    backend.auth("GET", "user", (200, profile))
    backend.rpc(ORG_CONTEXT_RPC, (200, []))

    result = await IdentityResolver(gateway, sessions).resolve_identity()

    assert result.identity.role == Role.UNKNOWN
    assert result.identity.org_not_set is True
    assert result.membership_error is None


@pytest.mark.asyncio
async def test_resolution_is_idempotent_without_backend_changes(gateway, backend, sessions, store):
    backend.auth("GET", "user", (200, PROFILE))
    backend.rpc(ORG_CONTEXT_RPC, (200, [{"org_id": "org-1", "role": "admin"}]))
    resolver = IdentityResolver(gateway, sessions)

    first = await resolver.resolve_identity()
    cached_first = store.get(IDENTITY_KEY)
    second = await resolver.resolve_identity()

    assert first == second
    assert store.get(IDENTITY_KEY) == cached_first
    assert len(backend.calls("GET", "/auth/v1/user")) == 2
    assert len(backend.rpc_calls(ORG_CONTEXT_RPC)) == 2


@pytest.mark.asyncio
async def test_profile_failure_falls_back_to_cached_identity(gateway, backend, sessions, identity_factory):
    cached = identity_factory()
    sessions.save_identity(cached)
    backend.auth("GET", "user", _connect_error())

    result = await IdentityResolver(gateway, sessions).resolve_identity()

    assert result.state == IdentityState.RESOLVED
    assert result.identity == cached
    assert result.profile_error
    assert backend.rpc_calls(ORG_CONTEXT_RPC) == []


@pytest.mark.asyncio
async def test_profile_failure_without_cache_is_error(gateway, backend, sessions):
    backend.auth("GET", "user", (500, {"message": "boom"}))

    result = await IdentityResolver(gateway, sessions).resolve_identity()

    assert result.state == IdentityState.ERROR
    assert result.identity is None


@pytest.mark.asyncio
async def test_no_session_is_unresolved_without_requests(gateway, backend):
    resolver = IdentityResolver(gateway, SessionStore(MemoryStore()))

    result = await resolver.resolve_identity()

    assert result.state == IdentityState.UNRESOLVED
    assert backend.requests == []


@pytest.mark.asyncio
async def test_explicit_session_is_used_for_both_calls(gateway, backend, sessions):
    backend.auth("GET", "user", (200, PROFILE))
    backend.rpc(ORG_CONTEXT_RPC, (200, [{"org_id": "org-1", "role": "member"}]))

    await IdentityResolver(gateway, sessions).resolve_identity(Session(access_token="other-token"))

    assert all(request.headers["Authorization"] == "Bearer other-token" for request in backend.requests)


def test_platform_admin_from_profile_or_membership():
    user = AuthUser(email="a@example.com", app_metadata={"platform_admin": True})
    assert merge_identity(user, None).platform_admin is True

    plain = AuthUser(email="a@example.com", app_metadata={"platform_admin": "yes"})
    assert merge_identity(plain, None).platform_admin is False
    membership = OrgContext(org_id="org-1", role="member", is_platform_admin=True)
    assert merge_identity(plain, membership).platform_admin is True
