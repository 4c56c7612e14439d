"""Tests for the operations report."""

import httpx
import pytest

from ocm.render import render_operations
from ocm.services.reporting_service import (
    NO_CASE_DATA_MESSAGE,
    VIEWS_UNAVAILABLE_MESSAGE,
    ReportingService,
)

SLA_ROWS = [
    {"case_id": "c1", "org_id": "org-1", "status": "under_review", "sla_breached": True},
    {"case_id": "c2", "org_id": "org-1", "status": "draft", "sla_breached": False},
]
ESCALATION_ROWS = [{"case_id": "c1", "latest_escalation_level": 2, "is_acknowledged": False}]


@pytest.mark.asyncio
async def test_rows_are_joined_by_case(gateway, backend):
    backend.rest("GET", "reporting_case_sla", (200, SLA_ROWS))
    backend.rest("GET", "reporting_case_escalation", (200, ESCALATION_ROWS))

    report = await ReportingService(gateway).load_operations_report()

    assert report.message == ""
    assert not report.is_partial
    assert [row.sla.case_id for row in report.rows] == ["c1", "c2"]
    assert report.rows[0].escalation.latest_escalation_level == 2
    assert report.rows[1].escalation is None


@pytest.mark.asyncio
async def test_escalation_failure_keeps_sla_rows(gateway, backend):
    backend.rest("GET", "reporting_case_sla", (200, SLA_ROWS))
    backend.rest("GET", "reporting_case_escalation", (404, {"message": "relation does not exist"}))

    report = await ReportingService(gateway).load_operations_report()

    assert report.is_partial
    assert report.escalation_error == "404"
    assert report.message == VIEWS_UNAVAILABLE_MESSAGE
    assert len(report.rows) == 2


@pytest.mark.asyncio
async def test_sla_failure_keeps_escalation_rows(gateway, backend):
    request = httpx.Request("GET", "https://gateway.test")
    backend.rest("GET", "reporting_case_sla", httpx.ConnectError("boom", request=request))
    backend.rest("GET", "reporting_case_escalation", (200, ESCALATION_ROWS))

    report = await ReportingService(gateway).load_operations_report()

    assert report.sla_error == "error"
    assert report.escalation_error is None
    assert report.message == VIEWS_UNAVAILABLE_MESSAGE
    assert [row.case_id for row in report.escalation_rows] == ["c1"]
    assert report.escalation_rows[0].latest_escalation_level == 2

    lines = render_operations(report)
    assert "c1  Escalation level: 2  Acknowledged: no" in lines


@pytest.mark.asyncio
async def test_empty_sla_view_message(gateway, backend):
    backend.rest("GET", "reporting_case_sla", (200, []))
    backend.rest("GET", "reporting_case_escalation", (200, []))

    report = await ReportingService(gateway).load_operations_report()

    assert report.message == NO_CASE_DATA_MESSAGE
    assert len(backend.requests) == 2
