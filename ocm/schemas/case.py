"""Pydantic schemas for offboarding cases."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from ocm.schemas.base import GatewayModel


class CaseRecord(GatewayModel):
    """
    Offboarding case row (read cache only).

    The backend owns this record. After any transition the client re-fetches
    it and never mutates a cached copy to base further decisions on.
    """
    id: str
    case_no: str | None = None
    org_id: str | None = None
    employee_name: str | None = None
    dept: str | None = None
    position: str | None = None
    last_working_day: str | None = None
    status: str | None = None


class CaseCreate(BaseModel):
    """Request to create a case."""
    org_id: str = Field(..., min_length=1)
    created_by: str | None = None
    employee_name: str = Field(..., min_length=1, max_length=255)
    case_no: str | None = Field(None, max_length=64)
    status: str | None = Field(None, description="Defaults to the lifecycle's initial status")
    dept: str | None = Field(None, max_length=255)
    position: str | None = Field(None, max_length=255)
    last_working_day: date | None = None


class TransitionOption(BaseModel):
    """A lifecycle action offered for the current status."""
    model_config = ConfigDict(frozen=True)

    label: str
    to_status: str
