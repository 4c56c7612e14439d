"""Schemas for privileged (platform admin and owner/admin) RPC results."""

from pydantic import BaseModel, ConfigDict

from ocm.schemas.base import GatewayModel


class UserInspectionRow(GatewayModel):
    """One row of admin_inspect_user (one row per membership)."""
    user_id: str | None = None
    email: str | None = None
    is_platform_admin: bool | None = None
    org_count: int | None = None
    org_id: str | None = None
    role: str | None = None


class UserInspection(BaseModel):
    """admin_inspect_user rows folded into one user plus memberships."""
    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    email: str | None = None
    is_platform_admin: bool = False
    org_count: int | None = None
    memberships: tuple[tuple[str, str | None], ...] = ()


class OrgInspection(GatewayModel):
    """Row of admin_inspect_org."""
    org_id: str | None = None
    member_count: int | None = None
    case_count: int | None = None
    cases_without_members: bool | None = None
    members_without_cases: bool | None = None


class AccessCheck(GatewayModel):
    """Row of admin_access_check: can a user see a case, and why."""
    user_id: str | None = None
    case_id: str | None = None
    case_org_id: str | None = None
    is_visible: bool | None = None
    reason: str | None = None


class ReportingSanity(GatewayModel):
    """Row of admin_reporting_sanity."""
    org_id: str | None = None
    case_count: int | None = None
    reporting_case_sla_count: int | None = None
    reporting_case_escalation_count: int | None = None
    reporting_empty: bool | None = None
    reporting_empty_reason: str | None = None


class ManageableOrg(GatewayModel):
    """Row of list_manageable_orgs."""
    org_id: str | None = None
    org_name: str | None = None
    role: str | None = None


class UserSearchResult(GatewayModel):
    """Row of search_users_by_email."""
    user_id: str | None = None
    email: str | None = None


class RoleOption(GatewayModel):
    """Row of list_roles."""
    role: str | None = None
    label: str | None = None


class ReviewerAssignment(GatewayModel):
    """Row of owner_assign_case_reviewer."""
    case_id: str | None = None
    reviewer_user_id: str | None = None


class OrgAssignment(GatewayModel):
    """Row of assign_user_to_org."""
    user_id: str | None = None
    org_id: str | None = None
    role: str | None = None


class InviteRedemption(GatewayModel):
    """Row of redeem_invite."""
    org_id: str | None = None
    role: str | None = None
