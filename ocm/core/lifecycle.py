"""Case lifecycle definitions.

Deployments use different status vocabularies, so the state machine is a
transition table chosen by configuration rather than hard-coded. Two tables
are shipped: the six-state review lifecycle (default) and the legacy
open/closed lifecycle.
"""

from dataclasses import dataclass, field
from typing import Literal

from ocm.core.permissions import CapabilityKey
from ocm.enums import CaseStatus
from ocm.schemas.case import TransitionOption

TransitionMode = Literal["rpc", "patch"]


@dataclass(frozen=True)
class Transition:
    """One lifecycle action available from a status."""
    label: str
    to_status: str
    capability: CapabilityKey | None = None

    def as_option(self) -> TransitionOption:
        return TransitionOption(label=self.label, to_status=self.to_status)


@dataclass(frozen=True)
class TransitionTable:
    """
    A lifecycle configuration.

    mode selects the backend call: "rpc" uses transition_offboarding_case_status,
    "patch" writes the status column directly. readiness_gate adds the advisory
    required-tasks check before closing.
    """
    name: str
    initial_status: str
    transitions: dict[str, tuple[Transition, ...]]
    mode: TransitionMode = "rpc"
    readiness_gate: bool = False
    terminal_statuses: frozenset[str] = field(default_factory=frozenset)

    def options_for(self, status: object) -> list[TransitionOption]:
        return [transition.as_option() for transition in self.lookup(status)]

    def lookup(self, status: object) -> tuple[Transition, ...]:
        """Transitions for a status; unknown, empty or terminal statuses have none."""
        normalized = normalize_status(status)
        if not normalized or normalized in self.terminal_statuses:
            return ()
        return self.transitions.get(normalized, ())

    def find(self, status: object, to_status: str) -> Transition | None:
        for transition in self.lookup(status):
            if transition.to_status == to_status:
                return transition
        return None

    @property
    def statuses(self) -> frozenset[str]:
        known = set(self.transitions) | set(self.terminal_statuses)
        for transitions in self.transitions.values():
            known.update(t.to_status for t in transitions)
        return frozenset(known)


REVIEW_LIFECYCLE = TransitionTable(
    name="review",
    initial_status=CaseStatus.DRAFT.value,
    transitions={
        CaseStatus.DRAFT.value: (Transition("Submit", CaseStatus.SUBMITTED.value),),
        CaseStatus.SUBMITTED.value: (
            Transition("Move to Under Review", CaseStatus.UNDER_REVIEW.value),
        ),
        CaseStatus.UNDER_REVIEW.value: (
            Transition("Approve", CaseStatus.APPROVED.value, CapabilityKey.OWNER_OR_ADMIN),
            Transition("Reject", CaseStatus.REJECTED.value, CapabilityKey.OWNER_OR_ADMIN),
        ),
        CaseStatus.REJECTED.value: (Transition("Reopen", CaseStatus.DRAFT.value),),
        CaseStatus.APPROVED.value: (
            Transition("Close", CaseStatus.CLOSED.value, CapabilityKey.OWNER_OR_ADMIN),
        ),
        CaseStatus.CLOSED.value: (),
    },
    mode="rpc",
    terminal_statuses=frozenset({CaseStatus.CLOSED.value}),
)

_CLOSE = Transition("Close", CaseStatus.CLOSED.value)

SIMPLE_LIFECYCLE = TransitionTable(
    name="simple",
    initial_status=CaseStatus.OPEN.value,
    transitions={
        CaseStatus.OPEN.value: (_CLOSE,),
        CaseStatus.IN_REVIEW.value: (_CLOSE,),
        CaseStatus.READY_TO_CLOSE.value: (_CLOSE,),
        CaseStatus.CLOSED.value: (),
    },
    mode="patch",
    readiness_gate=True,
    terminal_statuses=frozenset({CaseStatus.CLOSED.value}),
)

LIFECYCLES: dict[str, TransitionTable] = {
    REVIEW_LIFECYCLE.name: REVIEW_LIFECYCLE,
    SIMPLE_LIFECYCLE.name: SIMPLE_LIFECYCLE,
}

# Display labels that differ from the humanized status value.
_STATUS_LABELS = {
    CaseStatus.READY_TO_CLOSE.value: "In Review",
}


def get_lifecycle(name: str) -> TransitionTable:
    """Fetch a lifecycle configuration or raise KeyError."""
    return LIFECYCLES[name.strip().lower()]


def normalize_status(status: object) -> str:
    if status is None:
        return ""
    return str(status).strip().lower()


def available_transitions(table: TransitionTable, status: object) -> list[TransitionOption]:
    """Pure lookup; returns [] for unknown or terminal statuses, never raises."""
    return table.options_for(status)


def format_case_status(status: object) -> str:
    """Human label for a status value ("under_review" → "Under Review")."""
    normalized = normalize_status(status)
    if not normalized:
        return "unknown"
    if normalized in _STATUS_LABELS:
        return _STATUS_LABELS[normalized]
    return " ".join(token.capitalize() for token in normalized.split("_") if token)
