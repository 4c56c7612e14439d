"""Case service - case, task and evidence reads/writes."""

from __future__ import annotations

import logging

from ocm.core.errors import GatewayError
from ocm.core.lifecycle import REVIEW_LIFECYCLE, TransitionTable
from ocm.core.structured_logging import build_log_context
from ocm.schemas.base import parse_rows
from ocm.schemas.case import CaseCreate, CaseRecord
from ocm.schemas.task import Evidence, EvidenceCreate, Task, TaskCreate
from ocm.services.gateway import Gateway

logger = logging.getLogger(__name__)


class CaseService:
    """Reads and writes against the case, task and evidence resources."""

    def __init__(self, gateway: Gateway, lifecycle: TransitionTable = REVIEW_LIFECYCLE) -> None:
        self.gateway = gateway
        self.lifecycle = lifecycle

    async def list_cases(
        self,
        *,
        org_id: str | None = None,
        case_id: str | None = None,
        limit: int | None = None,
    ) -> list[CaseRecord]:
        payload = await self.gateway.list_offboarding_cases(
            org_id=org_id, case_id=case_id, limit=limit
        )
        return parse_rows(CaseRecord, payload)

    async def get_case(self, case_id: str) -> CaseRecord | None:
        """Fresh read of one case by id (None if the caller can't see it)."""
        if not case_id:
            raise ValueError("case_id is required")
        rows = await self.list_cases(case_id=case_id, limit=1)
        return rows[0] if rows else None

    async def require_case(self, case_id: str) -> CaseRecord:
        """get_case, raising a not-found GatewayError when nothing comes back."""
        record = await self.get_case(case_id)
        if record is None:
            raise GatewayError("Case not found", status=404, path=f"cases/{case_id}")
        return record

    async def create_case(self, data: CaseCreate) -> CaseRecord | None:
        body = data.model_dump(mode="json")
        body["status"] = data.status or self.lifecycle.initial_status
        payload = await self.gateway.create_offboarding_case(body)
        rows = parse_rows(CaseRecord, payload)
        if rows:
            logger.info(
                "Case created",
                extra=build_log_context(case_id=rows[0].id, org_id=data.org_id, action="case.create"),
            )
        return rows[0] if rows else None

    async def list_tasks(self, *, org_id: str | None = None, case_id: str | None = None) -> list[Task]:
        payload = await self.gateway.list_tasks(org_id=org_id, case_id=case_id)
        return parse_rows(Task, payload)

    async def create_task(self, data: TaskCreate) -> Task | None:
        payload = await self.gateway.create_task(data.model_dump(mode="json"))
        rows = parse_rows(Task, payload)
        logger.info(
            "Task created",
            extra=build_log_context(case_id=data.case_id, org_id=data.org_id, action="task.create"),
        )
        return rows[0] if rows else None

    async def list_evidence(
        self, *, org_id: str | None = None, task_id: str | None = None
    ) -> list[Evidence]:
        payload = await self.gateway.list_evidence(org_id=org_id, task_id=task_id)
        return parse_rows(Evidence, payload)

    async def create_evidence(self, data: EvidenceCreate) -> Evidence | None:
        payload = await self.gateway.create_evidence(data.model_dump(mode="json"))
        rows = parse_rows(Evidence, payload)
        logger.info(
            "Evidence created",
            extra=build_log_context(org_id=data.org_id, action="evidence.create"),
        )
        return rows[0] if rows else None
