"""Readiness mirror - advisory task-completion summary for a case.

The summary explains why the backend may refuse to close a case. It is never
the reason a transition the backend would accept gets suppressed.
"""

from __future__ import annotations

import logging
from typing import Iterable

from pydantic import ValidationError

from ocm.core.errors import GatewayError, status_label
from ocm.core.lifecycle import format_case_status, normalize_status
from ocm.core.structured_logging import build_log_context
from ocm.enums import CaseStatus
from ocm.schemas.case import CaseRecord
from ocm.schemas.task import ReadinessSummary, ReadinessView, Task
from ocm.services.case_service import CaseService

logger = logging.getLogger(__name__)

WAITING_MESSAGE = "Waiting for task data..."


def summarize_readiness(tasks: Iterable[Task]) -> ReadinessSummary:
    """Pure aggregation: required = is_required, complete = status == "complete"."""
    items = list(tasks)
    required = [task for task in items if task.is_required]
    required_complete = [task for task in required if task.is_complete]
    completed = [task for task in items if task.is_complete]
    return ReadinessSummary(
        total_count=len(items),
        completed_count=len(completed),
        required_count=len(required),
        required_complete_count=len(required_complete),
        required_incomplete_count=len(required) - len(required_complete),
        optional_count=len(items) - len(required),
        optional_complete_count=len(completed) - len(required_complete),
    )


def readiness_status_line(summary: ReadinessSummary) -> str:
    if summary.required_count == 0:
        return "No required tasks detected."
    if summary.required_incomplete_count > 0:
        return (
            f"Required tasks incomplete "
            f"({summary.required_incomplete_count}/{summary.required_count})."
        )
    return "All required tasks complete."


def completion_line(summary: ReadinessSummary) -> str:
    if summary.total_count == 0:
        return "No tasks available for this case."
    return (
        f"Tasks complete: {summary.completed_count}/{summary.total_count}. "
        f"Required complete: {summary.required_complete_count}/{summary.required_count}. "
        f"Optional complete: {summary.optional_complete_count}/{summary.optional_count}."
    )


def describe_readiness(summary: ReadinessSummary, status: object) -> ReadinessView:
    """Advisory text for a summary and the server-reported case status."""
    if normalize_status(status) == CaseStatus.CLOSED.value:
        details = "Read-only / Case closed."
    else:
        details = f"Server status: {format_case_status(status)} (read-only)."
    return ReadinessView(
        summary=summary,
        status_line=readiness_status_line(summary),
        details=details,
        completion=completion_line(summary),
    )


def unavailable_readiness(reason: str, *, details: str, error: str | None = None) -> ReadinessView:
    return ReadinessView(
        status_line=f"Closure readiness unavailable ({reason}).",
        details=details,
        completion=f"Completion summary unavailable ({reason}).",
        error=error,
    )


class ReadinessMirror:
    """Loads a case's tasks and mirrors the server's closure readiness."""

    def __init__(self, cases: CaseService) -> None:
        self.cases = cases

    async def load(self, case: CaseRecord | None) -> ReadinessView:
        has_case_id = bool(case and case.id)
        has_org_id = bool(case and case.org_id)
        if not (has_case_id and has_org_id):
            missing = "org" if has_case_id else "case"
            return unavailable_readiness(
                f"missing {missing} identifier",
                details="Server state cannot be mirrored without identifiers.",
            )

        try:
            tasks = await self.cases.list_tasks(org_id=case.org_id, case_id=case.id)
        except GatewayError as exc:
            logger.info(
                "Task load failed for readiness",
                extra=build_log_context(case_id=case.id, status=exc.status),
            )
            return unavailable_readiness(
                status_label(exc),
                details="Server state could not be mirrored due to task load failure.",
                error=status_label(exc),
            )
        except ValidationError:
            logger.warning("Task payload malformed", extra=build_log_context(case_id=case.id))
            return unavailable_readiness(
                "malformed",
                details="Server state could not be mirrored due to task load failure.",
                error="malformed",
            )
        return describe_readiness(summarize_readiness(tasks), case.status)
