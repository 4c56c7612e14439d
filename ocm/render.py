"""Plain-text rendering for the command-line views."""

from __future__ import annotations

from typing import Iterable

from ocm.core.lifecycle import format_case_status
from ocm.enums import AuditTrailState, IdentityState
from ocm.schemas.admin import AccessCheck, OrgInspection, ReportingSanity, UserInspection
from ocm.schemas.audit import AuditTrail
from ocm.schemas.auth import IdentityResult
from ocm.schemas.case import CaseRecord
from ocm.schemas.reporting import OperationsReport
from ocm.schemas.task import Evidence, ReadinessView, Task
from ocm.services.audit_service import format_action, format_actor, format_metadata, format_target
from ocm.services.case_detail_service import CaseDetailState
from ocm.services.readiness_service import WAITING_MESSAGE


def _value(value: object, empty: str = "-") -> str:
    if value is None or value == "":
        return empty
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def indent(lines: Iterable[str], prefix: str = "  ") -> list[str]:
    return [f"{prefix}{line}" if line else line for line in lines]


def render_identity(result: IdentityResult) -> list[str]:
    if result.state == IdentityState.UNRESOLVED:
        return ["Not signed in."]
    identity = result.identity
    if identity is None:
        return [f"Identity unavailable: {result.profile_error or 'unknown error'}"]
    lines = [
        f"Email: {_value(identity.email)}",
        f"Role: {identity.role.value}",
        f"Org: {'not set' if identity.org_not_set else _value(identity.org_name or identity.org_id)}",
        f"Platform admin: {_value(identity.platform_admin)}",
    ]
    if identity.org_id and identity.org_name:
        lines.insert(3, f"Org ID: {identity.org_id}")
    if result.membership_error:
        lines.append(f"Membership lookup failed: {result.membership_error}")
    if result.profile_error:
        lines.append(f"Profile refresh failed (showing cached identity): {result.profile_error}")
    return lines


def case_title(case: CaseRecord) -> str:
    return f"Case {case.case_no or case.id}: {case.employee_name or 'Unnamed employee'}"


def render_case_row(case: CaseRecord) -> str:
    return (
        f"{case.id}  {_value(case.case_no):<10}  {format_case_status(case.status):<14}  "
        f"{_value(case.employee_name)}"
    )


def render_case(case: CaseRecord) -> list[str]:
    return [
        case_title(case),
        *indent([
            f"ID: {case.id}",
            f"Status: {format_case_status(case.status)}",
            f"Org: {_value(case.org_id)}",
            f"Department: {_value(case.dept)}",
            f"Position: {_value(case.position)}",
            f"Last working day: {_value(case.last_working_day)}",
        ]),
    ]


def render_readiness(view: ReadinessView | None) -> list[str]:
    if view is None:
        return ["Closure readiness", f"  {WAITING_MESSAGE}"]
    return ["Closure readiness", *indent([view.status_line, view.details, view.completion])]


def render_audit(trail: AuditTrail | None) -> list[str]:
    lines = ["Audit trail"]
    if trail is None:
        return [*lines, "  Loading audit timeline..."]
    if trail.state != AuditTrailState.LOADED:
        return [*lines, f"  {trail.message}"]
    for entry in trail.entries:
        lines.append(f"  - {_value(entry.created_at, 'Unknown time')}  {format_action(entry.action)}")
        lines.append(f"    Actor: {format_actor(entry)}")
        lines.append(f"    Target: {format_target(entry)}")
        metadata = format_metadata(entry.metadata)
        if metadata != "-":
            lines.extend(indent(metadata.splitlines(), "    "))
    return lines


def render_case_detail(state: CaseDetailState) -> list[str]:
    if state.case is None:
        message = state.error.message if state.error else "Case not loaded."
        return [message]

    lines = render_case(state.case)
    lines.append("Actions")
    if state.transitions:
        for option in state.transitions:
            marker = "" if state.is_enabled(option) else " (unavailable)"
            lines.append(f"  {option.label} -> {option.to_status}{marker}")
    if state.status_message:
        lines.append(f"  {state.status_message}")
    if state.error:
        lines.append(f"  Error: {state.error.message}")
    lines.extend(render_readiness(state.readiness))
    lines.extend(render_audit(state.audit))
    return lines


def render_task(task: Task) -> str:
    required = "required" if task.is_required else "optional"
    return f"{_value(task.id)}  [{_value(task.status)}]  {_value(task.title)} ({required})"


def render_evidence(evidence: Evidence) -> str:
    return f"{evidence.id}  {_value(evidence.created_at)}  {_value(evidence.note)}"


def render_operations(report: OperationsReport) -> list[str]:
    lines: list[str] = []
    if report.message:
        lines.append(report.message)
    if report.sla_error:
        lines.append(f"SLA view unavailable ({report.sla_error}).")
    if report.escalation_error:
        lines.append(f"Escalation view unavailable ({report.escalation_error}).")
    for row in report.rows:
        sla = row.sla
        escalation = row.escalation
        parts = [
            _value(sla.case_id),
            format_case_status(sla.status),
            f"SLA breached: {_value(sla.sla_breached)}",
        ]
        if escalation is not None:
            parts.append(f"Escalation level: {_value(escalation.latest_escalation_level)}")
            parts.append(f"Acknowledged: {_value(escalation.is_acknowledged)}")
        else:
            parts.append("Escalation: -")
        lines.append("  ".join(parts))
    if report.sla_error:
        # Without SLA rows there is nothing to join against; list escalations as-is.
        for escalation in report.escalation_rows:
            lines.append(
                "  ".join(
                    [
                        _value(escalation.case_id),
                        f"Escalation level: {_value(escalation.latest_escalation_level)}",
                        f"Acknowledged: {_value(escalation.is_acknowledged)}",
                    ]
                )
            )
    return lines


def render_user_inspection(result: UserInspection | None) -> list[str]:
    if result is None:
        return ["No user found."]
    lines = [
        f"User ID: {_value(result.user_id)}",
        f"Email: {_value(result.email)}",
        f"Platform admin: {_value(result.is_platform_admin)}",
        f"Org count: {_value(result.org_count)}",
        "Memberships:",
    ]
    if not result.memberships:
        lines.append("  (none)")
    lines.extend(f"  {org_id}: {_value(role)}" for org_id, role in result.memberships)
    return lines


def render_org_inspection(result: OrgInspection | None) -> list[str]:
    if result is None:
        return ["No org found."]
    return [
        f"Org ID: {_value(result.org_id)}",
        f"Members: {_value(result.member_count)}",
        f"Cases: {_value(result.case_count)}",
        f"Cases without members: {_value(result.cases_without_members)}",
        f"Members without cases: {_value(result.members_without_cases)}",
    ]


def render_access_check(result: AccessCheck | None) -> list[str]:
    if result is None:
        return ["No access result returned."]
    return [
        f"User ID: {_value(result.user_id)}",
        f"Case ID: {_value(result.case_id)}",
        f"Case org: {_value(result.case_org_id)}",
        f"Visible: {_value(result.is_visible)}",
        f"Reason: {_value(result.reason)}",
    ]


def render_reporting_sanity(result: ReportingSanity | None) -> list[str]:
    if result is None:
        return ["No reporting data returned."]
    lines = [
        f"Org ID: {_value(result.org_id)}",
        f"Cases: {_value(result.case_count)}",
        f"SLA rows: {_value(result.reporting_case_sla_count)}",
        f"Escalation rows: {_value(result.reporting_case_escalation_count)}",
        f"Reporting empty: {_value(result.reporting_empty)}",
    ]
    if result.reporting_empty_reason:
        lines.append(f"Reason: {result.reporting_empty_reason}")
    return lines
