"""Pydantic schemas for tasks, evidence and closure readiness."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ocm.enums import TaskStatus
from ocm.schemas.base import GatewayModel


class Task(GatewayModel):
    """Task row. Only feeds the advisory readiness summary."""
    id: str | None = None
    org_id: str | None = None
    case_id: str | None = None
    title: str | None = None
    status: str | None = TaskStatus.OPEN.value
    is_required: bool = False

    @field_validator("is_required", mode="before")
    @classmethod
    def _null_is_optional(cls, value: object) -> object:
        return False if value is None else value

    @property
    def is_complete(self) -> bool:
        return self.status == TaskStatus.COMPLETE.value


class TaskCreate(BaseModel):
    """Request to create a task."""
    org_id: str = Field(..., min_length=1)
    case_id: str = Field(..., min_length=1)
    created_by: str | None = None
    title: str = Field(..., min_length=1, max_length=255)
    status: TaskStatus = TaskStatus.OPEN
    is_required: bool = False


class Evidence(GatewayModel):
    """Evidence row attached to a task."""
    id: str
    org_id: str | None = None
    task_id: str | None = None
    note: str | None = None
    created_by: str | None = None
    created_at: str | None = None


class EvidenceCreate(BaseModel):
    """Request to attach evidence to a task."""
    org_id: str = Field(..., min_length=1)
    task_id: str = Field(..., min_length=1)
    created_by: str | None = None
    note: str = Field(..., min_length=1, max_length=5000)


class ReadinessSummary(BaseModel):
    """Aggregate task completion counts for one case."""
    model_config = ConfigDict(frozen=True)

    total_count: int = 0
    completed_count: int = 0
    required_count: int = 0
    required_complete_count: int = 0
    required_incomplete_count: int = 0
    optional_count: int = 0
    optional_complete_count: int = 0

    @property
    def required_tasks_incomplete(self) -> bool:
        return self.required_incomplete_count > 0


class ReadinessView(BaseModel):
    """Advisory closure-readiness text plus the summary it was built from."""
    model_config = ConfigDict(frozen=True)

    summary: ReadinessSummary | None = None
    status_line: str
    details: str
    completion: str
    error: str | None = None
