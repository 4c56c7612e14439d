"""Client-side capability predicates over the resolved identity.

These only decide which affordances are enabled. The backend enforces every
rule again and its rejection is the canonical outcome. When the identity is
missing or unverified the predicates answer False.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ocm.enums import Role
from ocm.schemas.auth import Identity

OWNER_OR_ADMIN_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def is_owner_or_admin(identity: Identity | None) -> bool:
    """Verified owner or admin of the current org."""
    if identity is None or identity.org_not_set:
        return False
    return identity.role in OWNER_OR_ADMIN_ROLES


def is_platform_admin(identity: Identity | None) -> bool:
    """Caller-level flag, independent of org membership."""
    return identity is not None and identity.platform_admin is True


def can_manage_users(identity: Identity | None) -> bool:
    """Owner/admin with an org to manage."""
    return is_owner_or_admin(identity) and bool(identity and identity.org_id)


def can_assign_reviewer(identity: Identity | None) -> bool:
    return is_owner_or_admin(identity)


def can_view_cases(identity: Identity | None) -> bool:
    """Read-only screens stay reachable even when membership failed."""
    return identity is not None


class CapabilityKey(str, Enum):
    """Keys of client-side capabilities."""
    VIEW_CASES = "view_cases"
    ASSIGN_REVIEWER = "assign_reviewer"
    MANAGE_USERS = "manage_users"
    OWNER_OR_ADMIN = "owner_or_admin"
    PLATFORM_ADMIN = "platform_admin"


@dataclass(frozen=True)
class CapabilityDef:
    """Capability definition with metadata for display."""
    key: CapabilityKey
    label: str
    description: str
    predicate: Callable[[Identity | None], bool]


CAPABILITY_REGISTRY: dict[CapabilityKey, CapabilityDef] = {
    CapabilityKey.VIEW_CASES: CapabilityDef(
        CapabilityKey.VIEW_CASES, "View Cases",
        "Read case list, detail, readiness and audit", can_view_cases,
    ),
    CapabilityKey.ASSIGN_REVIEWER: CapabilityDef(
        CapabilityKey.ASSIGN_REVIEWER, "Assign Reviewer",
        "Assign a reviewer to a case", can_assign_reviewer,
    ),
    CapabilityKey.MANAGE_USERS: CapabilityDef(
        CapabilityKey.MANAGE_USERS, "Manage Users",
        "Search users and assign them to an org", can_manage_users,
    ),
    CapabilityKey.OWNER_OR_ADMIN: CapabilityDef(
        CapabilityKey.OWNER_OR_ADMIN, "Owner/Admin Actions",
        "Approve, reject and close cases", is_owner_or_admin,
    ),
    CapabilityKey.PLATFORM_ADMIN: CapabilityDef(
        CapabilityKey.PLATFORM_ADMIN, "Admin Inspection",
        "Cross-org inspection tooling", is_platform_admin,
    ),
}


def has_capability(identity: Identity | None, key: CapabilityKey | str) -> bool:
    """Evaluate one capability; unknown keys are denied."""
    try:
        definition = CAPABILITY_REGISTRY[CapabilityKey(key)]
    except ValueError:
        return False
    return definition.predicate(identity)


def capabilities_for(identity: Identity | None) -> dict[str, bool]:
    """All capabilities as a key → enabled map."""
    return {
        key.value: definition.predicate(identity)
        for key, definition in CAPABILITY_REGISTRY.items()
    }
