"""Tests for the case detail controller."""

import pytest

from ocm.core.lifecycle import REVIEW_LIFECYCLE
from ocm.enums import AuditTrailState, ErrorKind
from ocm.services.audit_service import AuditMirror
from ocm.services.case_detail_service import CaseDetailController
from ocm.services.case_service import CaseService
from ocm.services.lifecycle_service import NO_LONGER_VISIBLE_MESSAGE, CaseLifecycleController
from ocm.services.readiness_service import ReadinessMirror

TRANSITION_RPC = "transition_offboarding_case_status"


def _controller(gateway, identity=None):
    cases = CaseService(gateway, REVIEW_LIFECYCLE)
    return CaseDetailController(
        cases,
        CaseLifecycleController(cases, REVIEW_LIFECYCLE),
        ReadinessMirror(cases),
        AuditMirror(gateway),
        identity=identity,
    )


def _route_case(backend, *statuses):
    backend.rest(
        "GET",
        "offboarding_cases",
        *[(200, [{"id": "c1", "org_id": "org-1", "status": status}]) for status in statuses],
    )
    backend.rest("GET", "tasks", (200, [{"id": "t1", "is_required": True, "status": "open"}]))
    backend.rest("GET", "audit_logs", (200, []))


@pytest.mark.asyncio
async def test_load_builds_full_state(gateway, backend, identity_factory):
    _route_case(backend, "under_review")
    controller = _controller(gateway, identity_factory(role="member"))

    state = await controller.load("c1")

    assert state.case.status == "under_review"
    assert [option.to_status for option in state.transitions] == ["approved", "rejected"]
    assert state.enabled == frozenset()
    assert state.readiness.summary.required_incomplete_count == 1
    assert state.audit.state == AuditTrailState.EMPTY


@pytest.mark.asyncio
async def test_owner_sees_approve_enabled(gateway, backend, identity_factory):
    _route_case(backend, "under_review")
    controller = _controller(gateway, identity_factory(role="owner"))

    state = await controller.load("c1")

    assert state.enabled == frozenset({"approved", "rejected"})


@pytest.mark.asyncio
async def test_transition_emits_busy_then_resynced_state(gateway, backend, identity_factory):
    _route_case(backend, "draft", "submitted")
    backend.rpc(TRANSITION_RPC, (200, None))
    controller = _controller(gateway, identity_factory())
    await controller.load("c1")
    backend.requests.clear()
    events = []
    controller.subscribe(events.append)

    outcome = await controller.transition("submitted")

    assert outcome.applied is True
    assert [event.busy for event in events] == [True, False]
    assert events[0].enabled == frozenset()
    assert events[-1].case.status == "submitted"
    assert [option.to_status for option in events[-1].transitions] == ["under_review"]
    assert [request.url.path for request in backend.requests] == [
        "/rest/v1/rpc/transition_offboarding_case_status",
        "/rest/v1/offboarding_cases",
        "/rest/v1/tasks",
        "/rest/v1/audit_logs",
    ]


@pytest.mark.asyncio
async def test_failed_transition_keeps_case_and_reports_error(gateway, backend, identity_factory):
    _route_case(backend, "draft")
    backend.rpc(TRANSITION_RPC, (400, {"message": "Invalid transition"}))
    controller = _controller(gateway, identity_factory())
    await controller.load("c1")

    outcome = await controller.transition("submitted")

    assert outcome.applied is False
    assert controller.state.busy is False
    assert controller.state.case.status == "draft"
    assert controller.state.error.kind == ErrorKind.UNKNOWN
    assert controller.state.error.message == "invalid transition"
    assert controller.state.enabled == frozenset({"submitted"})


@pytest.mark.asyncio
async def test_transition_hiding_the_case_keeps_last_known(gateway, backend, identity_factory):
    _route_case(backend, "draft")
    backend.rest("GET", "offboarding_cases", (200, []))
    backend.rpc(TRANSITION_RPC, (200, None))
    controller = _controller(gateway, identity_factory())
    await controller.load("c1")

    outcome = await controller.transition("submitted")

    assert outcome.applied is True
    assert outcome.visible is False
    assert controller.state.busy is False
    assert controller.state.error is None
    assert controller.state.case.status == "draft"
    assert controller.state.status_message == NO_LONGER_VISIBLE_MESSAGE
    assert controller.state.enabled == frozenset()


@pytest.mark.asyncio
async def test_load_missing_case_reports_not_found(gateway, backend):
    backend.rest("GET", "offboarding_cases", (200, []))
    controller = _controller(gateway)

    state = await controller.load("missing")

    assert state.case is None
    assert state.error.kind == ErrorKind.NOT_FOUND
    assert backend.calls("GET", "/rest/v1/audit_logs") == []


@pytest.mark.asyncio
async def test_closed_case_has_no_actions(gateway, backend):
    _route_case(backend, "closed")
    controller = _controller(gateway)

    state = await controller.load("c1")

    assert state.transitions == ()
    assert state.status_message == "No lifecycle actions available."
    assert state.readiness.details == "Read-only / Case closed."


@pytest.mark.asyncio
async def test_refresh_audit_and_unsubscribe(gateway, backend):
    _route_case(backend, "draft")
    controller = _controller(gateway)
    await controller.load("c1")
    events = []
    unsubscribe = controller.subscribe(events.append)

    await controller.refresh_audit()
    unsubscribe()
    await controller.refresh_audit()

    assert len(events) == 1
    assert len(backend.calls("GET", "/rest/v1/audit_logs")) == 3


@pytest.mark.asyncio
async def test_async_listeners_are_awaited(gateway, backend):
    _route_case(backend, "draft")
    controller = _controller(gateway)
    seen = []

    async def listener(state):
        seen.append(state.case.id if state.case else None)

    controller.subscribe(listener)
    await controller.load("c1")

    assert seen == ["c1"]
