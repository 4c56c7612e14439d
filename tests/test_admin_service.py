"""Tests for privileged admin and owner tools."""

import json

import pytest

from ocm.core.errors import GatewayError, classify_error
from ocm.enums import ErrorKind
from ocm.services.admin_service import AdminService


@pytest.mark.asyncio
async def test_platform_tools_refused_locally_for_non_admin(gateway, backend, identity_factory):
    service = AdminService(gateway, identity_factory(platform_admin=False))

    with pytest.raises(GatewayError) as exc_info:
        await service.inspect_user(email="someone@example.com")
    with pytest.raises(GatewayError):
        await service.inspect_org("org-1")
    with pytest.raises(GatewayError):
        await service.access_check(user_id="u1", case_id="c1")
    with pytest.raises(GatewayError):
        await service.reporting_sanity("org-1")

    assert classify_error(exc_info.value).kind == ErrorKind.ACCESS_DENIED
    assert backend.requests == []


@pytest.mark.asyncio
async def test_owner_tools_refused_locally_for_member(gateway, backend, identity_factory):
    service = AdminService(gateway, identity_factory(role="member"))

    with pytest.raises(GatewayError):
        await service.assign_reviewer(case_id="c1", reviewer_user_id="u2")
    with pytest.raises(GatewayError):
        await service.list_manageable_orgs()
    with pytest.raises(GatewayError):
        await service.assign_user_to_org(user_id="u2", org_id="org-1", role="member")

    assert backend.requests == []


@pytest.mark.asyncio
async def test_owner_tools_refused_without_identity(gateway, backend):
    with pytest.raises(GatewayError):
        await AdminService(gateway, None).search_users("a@")
    assert backend.requests == []


@pytest.mark.asyncio
async def test_inspect_user_requires_lookup_key(gateway, backend, identity_factory):
    service = AdminService(gateway, identity_factory(platform_admin=True))

    with pytest.raises(ValueError, match="Provide an email or user ID."):
        await service.inspect_user(email="  ")
    assert backend.requests == []


@pytest.mark.asyncio
async def test_inspect_user_folds_membership_rows(gateway, backend, identity_factory):
    backend.rpc(
        "admin_inspect_user",
        (
            200,
            [
                {"user_id": "u1", "email": "a@example.com", "is_platform_admin": False,
                 "org_count": 2, "org_id": "org-1", "role": "owner"},
                {"user_id": "u1", "email": "a@example.com", "is_platform_admin": False,
                 "org_count": 2, "org_id": "org-2", "role": "member"},
            ],
        ),
    )
    service = AdminService(gateway, identity_factory(platform_admin=True))

    result = await service.inspect_user(email="a@example.com")

    assert result.user_id == "u1"
    assert result.org_count == 2
    assert result.memberships == (("org-1", "owner"), ("org-2", "member"))
    [request] = backend.rpc_calls("admin_inspect_user")
    assert json.loads(request.content) == {"p_email": "a@example.com", "p_user_id": None}


@pytest.mark.asyncio
async def test_inspect_user_without_rows_is_none(gateway, backend, identity_factory):
    backend.rpc("admin_inspect_user", (200, []))
    service = AdminService(gateway, identity_factory(platform_admin=True))

    assert await service.inspect_user(user_id="missing") is None


@pytest.mark.asyncio
async def test_assign_reviewer_validation(gateway, backend, identity_factory):
    service = AdminService(gateway, identity_factory())

    with pytest.raises(ValueError, match="case_id and reviewer_user_id are required."):
        await service.assign_reviewer(case_id="c1", reviewer_user_id="")
    assert backend.requests == []


@pytest.mark.asyncio
async def test_assign_reviewer_backend_rejection_is_classified(gateway, backend, identity_factory):
    backend.rpc("owner_assign_case_reviewer", (400, {"message": "Reviewer not in org"}))
    service = AdminService(gateway, identity_factory())

    with pytest.raises(GatewayError) as exc_info:
        await service.assign_reviewer(case_id="c1", reviewer_user_id="u9")

    assert classify_error(exc_info.value).message == "reviewer not in org."


@pytest.mark.asyncio
async def test_error_rows_raise(gateway, backend, identity_factory):
    backend.rpc("assign_user_to_org", (200, [{"error_code": "22023", "error_message": "Invalid role"}]))
    service = AdminService(gateway, identity_factory())

    with pytest.raises(GatewayError) as exc_info:
        await service.assign_user_to_org(user_id="u2", org_id="org-1", role="wizard")

    assert exc_info.value.code == "22023"
    assert classify_error(exc_info.value).message == "invalid role."


@pytest.mark.asyncio
async def test_access_check_row(gateway, backend, identity_factory):
    backend.rpc(
        "admin_access_check",
        (200, [{"user_id": "u1", "case_id": "c1", "case_org_id": "org-1",
                "is_visible": False, "reason": "not a member of case org"}]),
    )
    service = AdminService(gateway, identity_factory(platform_admin=True, role="member"))

    result = await service.access_check(user_id="u1", case_id="c1")

    assert result.is_visible is False
    assert result.reason == "not a member of case org"
