"""Tests for client-side capability predicates."""

from ocm.core.permissions import (
    CapabilityKey,
    can_assign_reviewer,
    can_manage_users,
    capabilities_for,
    has_capability,
    is_owner_or_admin,
    is_platform_admin,
)
from ocm.enums import Role


def test_owner_and_admin(identity_factory):
    assert is_owner_or_admin(identity_factory(role="owner"))
    assert is_owner_or_admin(identity_factory(role="admin"))
    assert not is_owner_or_admin(identity_factory(role="member"))


def test_unverified_membership_denies_everything_org_scoped(identity_factory):
    identity = identity_factory(role="owner", org_id=None, org_not_set=True)

    assert not is_owner_or_admin(identity)
    assert not can_assign_reviewer(identity)
    assert not can_manage_users(identity)


def test_missing_identity_denies():
    assert not is_owner_or_admin(None)
    assert not is_platform_admin(None)
    assert capabilities_for(None) == {key.value: False for key in CapabilityKey}


def test_platform_admin_is_independent_of_membership(identity_factory):
    identity = identity_factory(role=Role.UNKNOWN, org_id=None, org_not_set=True, platform_admin=True)

    assert is_platform_admin(identity)
    assert has_capability(identity, CapabilityKey.PLATFORM_ADMIN)
    assert has_capability(identity, "view_cases")
    assert not has_capability(identity, "owner_or_admin")


def test_unknown_capability_is_denied(identity_factory):
    assert not has_capability(identity_factory(), "delete_everything")
