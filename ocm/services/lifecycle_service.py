"""Case lifecycle controller - transitions with read-after-write re-sync.

A transition never trusts its own intent: after the backend accepts it, the
case is re-fetched and the re-fetched status is what callers see. While a
transition for a case is in flight, further activations for that case are
no-ops (the disabled control); the mark is cleared when the request settles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from ocm.core.errors import ClassifiedError, GatewayError, classify_error
from ocm.core.lifecycle import TransitionTable, available_transitions, normalize_status
from ocm.core.permissions import has_capability
from ocm.core.structured_logging import build_log_context
from ocm.enums import CaseStatus, ErrorKind
from ocm.schemas.auth import Identity
from ocm.schemas.case import CaseRecord, TransitionOption
from ocm.schemas.task import ReadinessSummary
from ocm.services.case_service import CaseService

logger = logging.getLogger(__name__)

IN_FLIGHT_MESSAGE = "Updating case status..."
READINESS_BLOCK_MESSAGE = "Required tasks incomplete; the case can't be closed yet."
ALREADY_CLOSED_MESSAGE = "Case is already closed."
NO_CLOSE_EDGE_MESSAGE = "Case can't be closed from its current status."
NO_LONGER_VISIBLE_MESSAGE = "Status updated, but the case is no longer visible to you."


@dataclass(frozen=True)
class TransitionOutcome:
    """
    Result of one transition attempt.

    applied is True only when the backend accepted the request. skipped is True when the attempt was a no-op because another
    transition for the same case was still in flight. visible is False when the
    backend accepted the change but the re-fetch returned no row; case is then
    the last known record (if one was given).
    """
    applied: bool
    case: CaseRecord | None = None
    error: ClassifiedError | None = None
    skipped: bool = False
    visible: bool = True


class CaseLifecycleController:
    """Owns the state machine over case status for one lifecycle configuration."""

    def __init__(self, cases: CaseService, table: TransitionTable) -> None:
        self.cases = cases
        self.table = table
        self._in_flight: set[str] = set()

    def available_transitions(self, status: object) -> list[TransitionOption]:
        return available_transitions(self.table, status)

    def is_in_flight(self, case_id: str) -> bool:
        return case_id in self._in_flight

    def transition_allowed(
        self,
        case: CaseRecord,
        option: TransitionOption,
        identity: Identity | None,
        readiness: ReadinessSummary | None = None,
    ) -> bool:
        """Whether the control for option should be enabled (UI courtesy only)."""
        if self.is_in_flight(case.id):
            return False
        transition = self.table.find(case.status, option.to_status)
        if transition is None:
            return False
        if transition.capability is not None and not has_capability(identity, transition.capability):
            return False
        if (
            self.table.readiness_gate
            and option.to_status == CaseStatus.CLOSED.value
            and readiness is not None
            and readiness.required_tasks_incomplete
        ):
            return False
        return True

    async def _apply(self, case_id: str, to_status: str) -> None:
        if self.table.mode == "patch":
            await self.cases.gateway.patch_case_status(case_id, to_status)
        else:
            await self.cases.gateway.transition_case_status(case_id, to_status)

    async def perform_transition(
        self, case_id: str, to_status: str, *, last_known: CaseRecord | None = None
    ) -> TransitionOutcome:
        """
        Ask the backend to move a case to to_status, then re-fetch it.

        Failures leave the case untouched and come back classified in the
        outcome; nothing raised by the gateway escapes.
        """
        if not case_id:
            raise ValueError("case_id is required")
        if case_id in self._in_flight:
            logger.debug("Transition already in flight", extra=build_log_context(case_id=case_id))
            return TransitionOutcome(applied=False, skipped=True)

        self._in_flight.add(case_id)
        log_context = build_log_context(case_id=case_id, action="case.transition", status=to_status)
        try:
            await self._apply(case_id, to_status)
            refreshed = await self.cases.get_case(case_id)
            if refreshed is None:
                logger.warning("Case not visible after transition", extra=log_context)
                return TransitionOutcome(applied=True, case=last_known, visible=False)
            if normalize_status(refreshed.status) != normalize_status(to_status):
                logger.info("Backend applied a different status than requested", extra=log_context)
            logger.info("Case transition applied", extra=log_context)
            return TransitionOutcome(applied=True, case=refreshed)
        except (GatewayError, ValidationError) as exc:
            logger.info("Case transition failed", extra=log_context)
            return TransitionOutcome(applied=False, error=classify_error(exc))
        finally:
            self._in_flight.discard(case_id)

    async def close_case(
        self,
        case: CaseRecord,
        readiness: ReadinessSummary | None = None,
    ) -> TransitionOutcome:
        """
        Close action: refused locally when already closed, when the table has no
        edge to closed from the current status, or when required tasks are
        visibly incomplete; otherwise a normal transition to closed.
        """
        if normalize_status(case.status) == CaseStatus.CLOSED.value:
            return TransitionOutcome(
                applied=False,
                error=ClassifiedError(ErrorKind.VALIDATION, ALREADY_CLOSED_MESSAGE),
            )
        if self.table.find(case.status, CaseStatus.CLOSED.value) is None:
            return TransitionOutcome(
                applied=False,
                error=ClassifiedError(ErrorKind.VALIDATION, NO_CLOSE_EDGE_MESSAGE),
            )
        if self.table.readiness_gate and readiness is not None and readiness.required_tasks_incomplete:
            return TransitionOutcome(
                applied=False,
                error=ClassifiedError(ErrorKind.VALIDATION, READINESS_BLOCK_MESSAGE),
            )
        return await self.perform_transition(case.id, CaseStatus.CLOSED.value, last_known=case)
