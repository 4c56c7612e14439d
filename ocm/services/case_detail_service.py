"""Case detail controller - loads a case view and keeps it in sync after mutations.

Views subscribe to state changes instead of rebuilding themselves: the
controller re-fetches data, replaces its state, and notifies listeners.
Transition sequencing is strict: request → case re-fetch → readiness reload →
audit reload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Union

from ocm.core.errors import ClassifiedError, GatewayError, classify_error
from ocm.core.structured_logging import build_log_context
from ocm.schemas.audit import AuditTrail
from ocm.schemas.auth import Identity
from ocm.schemas.case import CaseRecord, TransitionOption
from ocm.schemas.task import ReadinessView
from ocm.services.audit_service import AuditMirror
from ocm.services.case_service import CaseService
from ocm.services.lifecycle_service import (
    IN_FLIGHT_MESSAGE,
    NO_LONGER_VISIBLE_MESSAGE,
    CaseLifecycleController,
    TransitionOutcome,
)
from ocm.services.readiness_service import ReadinessMirror

logger = logging.getLogger(__name__)

NO_ACTIONS_MESSAGE = "No lifecycle actions available."


@dataclass(frozen=True)
class CaseDetailState:
    """Snapshot of everything the case detail view shows."""
    case: CaseRecord | None = None
    transitions: tuple[TransitionOption, ...] = ()
    enabled: frozenset[str] = field(default_factory=frozenset)
    readiness: ReadinessView | None = None
    audit: AuditTrail | None = None
    busy: bool = False
    status_message: str = ""
    error: ClassifiedError | None = None

    def is_enabled(self, option: TransitionOption) -> bool:
        return not self.busy and option.to_status in self.enabled


Listener = Callable[[CaseDetailState], Union[None, Awaitable[None]]]


class CaseDetailController:
    """Case detail state owner (one instance per displayed case)."""

    def __init__(
        self,
        cases: CaseService,
        lifecycle: CaseLifecycleController,
        readiness: ReadinessMirror,
        audit: AuditMirror,
        *,
        identity: Identity | None = None,
    ) -> None:
        self.cases = cases
        self.lifecycle = lifecycle
        self.readiness = readiness
        self.audit = audit
        self.identity = identity
        self.state = CaseDetailState()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def _emit(self, state: CaseDetailState) -> None:
        self.state = state
        for listener in list(self._listeners):
            result = listener(state)
            if result is not None:
                await result

    def _with_transitions(self, state: CaseDetailState) -> CaseDetailState:
        case = state.case
        if case is None:
            return replace(state, transitions=(), enabled=frozenset())
        options = tuple(self.lifecycle.available_transitions(case.status))
        summary = state.readiness.summary if state.readiness else None
        enabled = frozenset(
            option.to_status
            for option in options
            if self.lifecycle.transition_allowed(case, option, self.identity, summary)
        )
        message = state.status_message
        if not options and not state.busy and not message:
            message = NO_ACTIONS_MESSAGE
        return replace(state, transitions=options, enabled=enabled, status_message=message)

    async def load(self, case_id: str) -> CaseDetailState:
        """Initial load: case, readiness, audit."""
        try:
            case = await self.cases.require_case(case_id)
        except GatewayError as exc:
            state = CaseDetailState(error=classify_error(exc))
            await self._emit(state)
            return state
        readiness = await self.readiness.load(case)
        audit = await self.audit.load(case.id)
        state = self._with_transitions(CaseDetailState(case=case, readiness=readiness, audit=audit))
        await self._emit(state)
        return state

    async def transition(self, to_status: str) -> TransitionOutcome:
        """Run one lifecycle transition and re-sync the view from the backend."""
        case = self.state.case
        if case is None:
            raise ValueError("load() a case before transitioning it")
        if self.state.busy or self.lifecycle.is_in_flight(case.id):
            logger.debug("Transition ignored while busy", extra=build_log_context(case_id=case.id))
            return TransitionOutcome(applied=False, skipped=True)

        await self._emit(
            replace(self.state, busy=True, error=None, status_message=IN_FLIGHT_MESSAGE, enabled=frozenset())
        )
        outcome = await self.lifecycle.perform_transition(case.id, to_status, last_known=case)
        if outcome.applied and not outcome.visible:
            await self._emit(
                replace(
                    self.state,
                    busy=False,
                    status_message=NO_LONGER_VISIBLE_MESSAGE,
                    transitions=(),
                    enabled=frozenset(),
                )
            )
            return outcome
        if not outcome.applied or outcome.case is None:
            await self._emit(
                self._with_transitions(
                    replace(self.state, busy=False, status_message="", error=outcome.error)
                )
            )
            return outcome

        readiness = await self.readiness.load(outcome.case)
        audit = await self.audit.load(outcome.case.id)
        await self._emit(
            self._with_transitions(
                CaseDetailState(case=outcome.case, readiness=readiness, audit=audit)
            )
        )
        return outcome

    async def refresh_audit(self) -> AuditTrail:
        """Re-read the audit trail (after task/evidence mutations touching this case)."""
        case = self.state.case
        trail = await self.audit.load(case.id if case else None)
        await self._emit(replace(self.state, audit=trail))
        return trail

    async def refresh(self) -> CaseDetailState:
        case = self.state.case
        if case is None:
            raise ValueError("load() a case before refreshing it")
        return await self.load(case.id)
