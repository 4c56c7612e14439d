"""Reporting view schemas for the operations dashboard."""

from pydantic import BaseModel, ConfigDict

from ocm.schemas.base import GatewayModel


class CaseSlaRow(GatewayModel):
    """Row of the reporting_case_sla view."""
    case_id: str | None = None
    org_id: str | None = None
    status: str | None = None
    sla_breached: bool | None = None


class CaseEscalationRow(GatewayModel):
    """Row of the reporting_case_escalation view."""
    case_id: str | None = None
    latest_escalation_level: int | None = None
    is_acknowledged: bool | None = None
    latest_escalated_at: str | None = None
    latest_acknowledged_at: str | None = None


class OperationsRow(BaseModel):
    """SLA row joined with its case's escalation row (if any)."""
    model_config = ConfigDict(frozen=True)

    sla: CaseSlaRow
    escalation: CaseEscalationRow | None = None


class OperationsReport(BaseModel):
    """Settled result of both reporting reads; partial data is kept."""
    model_config = ConfigDict(frozen=True)

    rows: tuple[OperationsRow, ...] = ()
    escalation_rows: tuple[CaseEscalationRow, ...] = ()
    sla_error: str | None = None
    escalation_error: str | None = None
    message: str = ""

    @property
    def is_partial(self) -> bool:
        return self.sla_error is not None or self.escalation_error is not None
