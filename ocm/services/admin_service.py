"""Admin service - privileged inspection and membership RPCs.

Each tool is pre-empted client-side when the resolved identity cannot use it:
the call is refused locally with an ACCESS_DENIED GatewayError and no request
leaves the process. The backend still enforces every rule on its own.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from ocm.core.errors import GatewayError, raise_for_rpc_error
from ocm.core.permissions import can_assign_reviewer, can_manage_users, is_platform_admin
from ocm.core.structured_logging import build_log_context
from ocm.schemas.admin import (
    AccessCheck,
    ManageableOrg,
    OrgAssignment,
    OrgInspection,
    ReportingSanity,
    ReviewerAssignment,
    RoleOption,
    UserInspection,
    UserInspectionRow,
    UserSearchResult,
)
from ocm.schemas.auth import Identity
from ocm.schemas.base import RowT, parse_rows
from ocm.services.gateway import Gateway

logger = logging.getLogger(__name__)

PLATFORM_ADMIN_DENIED = "Access denied: platform admin required"
OWNER_ADMIN_DENIED = "Access denied: owner or admin required"

MISSING_USER_LOOKUP = "Provide an email or user ID."
MISSING_ORG = "Provide an org ID."
MISSING_ACCESS_CHECK = "Provide both user ID and case ID."
MISSING_REVIEWER_ASSIGNMENT = "case_id and reviewer_user_id are required."
MISSING_ORG_ASSIGNMENT = "user_id, org_id and role are required."


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def fold_user_inspection(rows: list[UserInspectionRow]) -> UserInspection | None:
    """admin_inspect_user returns one row per membership; fold them into one user."""
    if not rows:
        return None
    first = rows[0]
    memberships = tuple((row.org_id, row.role) for row in rows if row.org_id)
    return UserInspection(
        user_id=first.user_id,
        email=first.email,
        is_platform_admin=any(row.is_platform_admin is True for row in rows),
        org_count=first.org_count if first.org_count is not None else len(memberships),
        memberships=memberships,
    )


class AdminService:
    """Privileged tools, gated on the caller's resolved identity."""

    def __init__(self, gateway: Gateway, identity: Identity | None) -> None:
        self.gateway = gateway
        self.identity = identity

    def _require(self, predicate: Callable[[Identity | None], bool], message: str, action: str) -> None:
        if not predicate(self.identity):
            logger.info("Privileged call refused locally", extra=build_log_context(action=action))
            raise GatewayError(message, status=None)

    @staticmethod
    def _rows(model: type[RowT], payload: Any, function_name: str) -> list[RowT]:
        raise_for_rpc_error(payload, function_name)
        return parse_rows(model, payload)

    # =========================================================================
    # Platform admin inspection
    # =========================================================================

    async def inspect_user(
        self, *, email: str | None = None, user_id: str | None = None
    ) -> UserInspection | None:
        self._require(is_platform_admin, PLATFORM_ADMIN_DENIED, "admin_inspect_user")
        email, user_id = _clean(email), _clean(user_id)
        if not email and not user_id:
            raise ValueError(MISSING_USER_LOOKUP)
        payload = await self.gateway.admin_inspect_user(email=email, user_id=user_id)
        return fold_user_inspection(self._rows(UserInspectionRow, payload, "admin_inspect_user"))

    async def inspect_org(self, org_id: str | None) -> OrgInspection | None:
        self._require(is_platform_admin, PLATFORM_ADMIN_DENIED, "admin_inspect_org")
        org_id = _clean(org_id)
        if not org_id:
            raise ValueError(MISSING_ORG)
        rows = self._rows(OrgInspection, await self.gateway.admin_inspect_org(org_id), "admin_inspect_org")
        return rows[0] if rows else None

    async def access_check(self, *, user_id: str | None, case_id: str | None) -> AccessCheck | None:
        self._require(is_platform_admin, PLATFORM_ADMIN_DENIED, "admin_access_check")
        user_id, case_id = _clean(user_id), _clean(case_id)
        if not user_id or not case_id:
            raise ValueError(MISSING_ACCESS_CHECK)
        payload = await self.gateway.admin_access_check(user_id=user_id, case_id=case_id)
        rows = self._rows(AccessCheck, payload, "admin_access_check")
        return rows[0] if rows else None

    async def reporting_sanity(self, org_id: str | None) -> ReportingSanity | None:
        self._require(is_platform_admin, PLATFORM_ADMIN_DENIED, "admin_reporting_sanity")
        org_id = _clean(org_id)
        if not org_id:
            raise ValueError(MISSING_ORG)
        payload = await self.gateway.admin_reporting_sanity(org_id)
        rows = self._rows(ReportingSanity, payload, "admin_reporting_sanity")
        return rows[0] if rows else None

    # =========================================================================
    # Owner / admin tools
    # =========================================================================

    async def assign_reviewer(
        self, *, case_id: str | None, reviewer_user_id: str | None
    ) -> ReviewerAssignment | None:
        self._require(can_assign_reviewer, OWNER_ADMIN_DENIED, "owner_assign_case_reviewer")
        case_id, reviewer_user_id = _clean(case_id), _clean(reviewer_user_id)
        if not case_id or not reviewer_user_id:
            raise ValueError(MISSING_REVIEWER_ASSIGNMENT)
        payload = await self.gateway.owner_assign_case_reviewer(
            case_id=case_id, reviewer_user_id=reviewer_user_id
        )
        rows = self._rows(ReviewerAssignment, payload, "owner_assign_case_reviewer")
        logger.info(
            "Reviewer assigned",
            extra=build_log_context(case_id=case_id, action="reviewer.assign"),
        )
        return rows[0] if rows else None

    async def list_manageable_orgs(self) -> list[ManageableOrg]:
        self._require(can_manage_users, OWNER_ADMIN_DENIED, "list_manageable_orgs")
        return self._rows(ManageableOrg, await self.gateway.list_manageable_orgs(), "list_manageable_orgs")

    async def search_users(self, email_query: str | None) -> list[UserSearchResult]:
        self._require(can_manage_users, OWNER_ADMIN_DENIED, "search_users_by_email")
        payload = await self.gateway.search_users_by_email(_clean(email_query))
        return self._rows(UserSearchResult, payload, "search_users_by_email")

    async def list_roles(self) -> list[RoleOption]:
        self._require(can_manage_users, OWNER_ADMIN_DENIED, "list_roles")
        return self._rows(RoleOption, await self.gateway.list_roles(), "list_roles")

    async def assign_user_to_org(
        self, *, user_id: str | None, org_id: str | None, role: str | None
    ) -> OrgAssignment | None:
        """Membership-changing: callers re-resolve identity afterwards."""
        self._require(can_manage_users, OWNER_ADMIN_DENIED, "assign_user_to_org")
        user_id, org_id, role = _clean(user_id), _clean(org_id), _clean(role)
        if not user_id or not org_id or not role:
            raise ValueError(MISSING_ORG_ASSIGNMENT)
        payload = await self.gateway.assign_user_to_org(user_id=user_id, org_id=org_id, role=role)
        rows = self._rows(OrgAssignment, payload, "assign_user_to_org")
        logger.info("User assigned to org", extra=build_log_context(org_id=org_id, action="org.assign"))
        return rows[0] if rows else None
