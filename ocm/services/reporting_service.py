"""Reporting service - operations dashboard over the SLA and escalation views.

Both views are read concurrently and both reads are allowed to settle: one
failing view never hides rows from the other.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from ocm.core.errors import GatewayError, status_label
from ocm.core.structured_logging import build_log_context
from ocm.schemas.base import parse_rows
from ocm.schemas.reporting import CaseEscalationRow, CaseSlaRow, OperationsReport, OperationsRow
from ocm.services.gateway import REPORTING_ESCALATION_VIEW, REPORTING_SLA_VIEW, Gateway

logger = logging.getLogger(__name__)

VIEWS_UNAVAILABLE_MESSAGE = "Reporting views not yet available."
NO_CASE_DATA_MESSAGE = "No case data returned for this account."


def join_operations(
    sla_rows: list[CaseSlaRow], escalation_rows: list[CaseEscalationRow]
) -> tuple[OperationsRow, ...]:
    """Attach each case's escalation row (last one wins on duplicates)."""
    by_case = {row.case_id: row for row in escalation_rows if row.case_id}
    return tuple(
        OperationsRow(sla=row, escalation=by_case.get(row.case_id) if row.case_id else None)
        for row in sla_rows
    )


def _settle(result: Any, model: type, view: str) -> tuple[list, str | None]:
    if isinstance(result, BaseException):
        if not isinstance(result, GatewayError):
            raise result
        logger.info("Reporting view failed", extra=build_log_context(path=view, status=result.status))
        return [], status_label(result)
    try:
        return parse_rows(model, result), None
    except ValidationError:
        logger.warning("Reporting view payload malformed", extra=build_log_context(path=view))
        return [], "malformed"


class ReportingService:
    def __init__(self, gateway: Gateway) -> None:
        self.gateway = gateway

    async def load_operations_report(self) -> OperationsReport:
        sla_result, escalation_result = await asyncio.gather(
            self.gateway.list_reporting_case_sla(),
            self.gateway.list_reporting_case_escalation(),
            return_exceptions=True,
        )
        sla_rows, sla_error = _settle(sla_result, CaseSlaRow, REPORTING_SLA_VIEW)
        escalation_rows, escalation_error = _settle(
            escalation_result, CaseEscalationRow, REPORTING_ESCALATION_VIEW
        )

        if sla_error or escalation_error:
            message = VIEWS_UNAVAILABLE_MESSAGE
        elif not sla_rows:
            message = NO_CASE_DATA_MESSAGE
        else:
            message = ""

        return OperationsReport(
            rows=join_operations(sla_rows, escalation_rows),
            escalation_rows=tuple(escalation_rows),
            sla_error=sla_error,
            escalation_error=escalation_error,
            message=message,
        )
