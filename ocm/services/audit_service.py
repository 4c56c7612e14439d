"""Audit mirror - read-only rendering of the backend's audit log for a case.

Every load is a fresh server read; entries are never merged with local state.
An unreachable backend produces an ERROR trail, never an EMPTY one, so "no
history" and "couldn't load history" stay distinguishable.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ocm.core.errors import GatewayError, status_label
from ocm.core.structured_logging import build_log_context
from ocm.enums import AuditTrailState
from ocm.schemas.audit import AuditLogEntry, AuditTrail
from ocm.schemas.base import parse_rows
from ocm.services.gateway import Gateway

logger = logging.getLogger(__name__)

EMPTY_MESSAGE = "No audit activity found."

ACTION_LABELS: dict[str, str] = {
    "case.create": "Case created",
    "case.close": "Case closed",
    "case.transition": "Case status changed",
    "reviewer.assign": "Reviewer assigned",
    "task.create": "Task created",
    "evidence.create": "Evidence created",
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def format_action(action: str | None) -> str:
    if not action:
        return "Unknown action"
    return ACTION_LABELS.get(action, action)


def format_actor(entry: AuditLogEntry) -> str:
    return entry.actor_id or "Unknown actor"


def format_target(entry: AuditLogEntry) -> str:
    return f"{entry.entity_type or 'unknown'} ({entry.entity_id or 'unknown'})"


def format_metadata(metadata: Any) -> str:
    if metadata is None:
        return "-"
    if isinstance(metadata, str):
        return metadata
    try:
        return json.dumps(metadata, indent=2, sort_keys=True)
    except (TypeError, ValueError):
        return str(metadata)


def error_message(error: BaseException | None) -> str:
    return f"Unable to load audit timeline ({status_label(error)})."


def order_entries(entries: list[AuditLogEntry]) -> tuple[AuditLogEntry, ...]:
    """Newest first. Stable, so server order breaks ties and unparseable timestamps sink."""
    return tuple(
        sorted(entries, key=lambda entry: entry.created_at_dt or _EPOCH, reverse=True)
    )


class AuditMirror:
    """Fetches the ordered audit trail of a case."""

    def __init__(self, gateway: Gateway) -> None:
        self.gateway = gateway

    async def load(self, case_id: str | None) -> AuditTrail:
        if not case_id:
            return AuditTrail(
                case_id=None,
                state=AuditTrailState.ERROR,
                error="missing case identifier",
                message="Unable to load audit timeline (missing case identifier).",
            )

        try:
            payload = await self.gateway.list_audit_logs(case_id)
        except GatewayError as exc:
            logger.info(
                "Audit trail load failed",
                extra=build_log_context(case_id=case_id, status=exc.status),
            )
            return AuditTrail(
                case_id=case_id,
                state=AuditTrailState.ERROR,
                error=status_label(exc),
                message=error_message(exc),
            )

        try:
            entries = order_entries(parse_rows(AuditLogEntry, payload))
        except ValidationError:
            logger.warning("Audit trail payload malformed", extra=build_log_context(case_id=case_id))
            return AuditTrail(
                case_id=case_id,
                state=AuditTrailState.ERROR,
                error="malformed",
                message="Unable to load audit timeline (malformed).",
            )

        if not entries:
            return AuditTrail(case_id=case_id, state=AuditTrailState.EMPTY, message=EMPTY_MESSAGE)
        return AuditTrail(case_id=case_id, state=AuditTrailState.LOADED, entries=entries)
