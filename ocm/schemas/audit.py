"""Audit trail schemas."""

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ocm.enums import AuditTrailState
from ocm.schemas.base import GatewayModel


class AuditLogEntry(GatewayModel):
    """Immutable audit row written by the backend as a side effect of mutations."""
    created_at: str | None = None
    actor_id: str | None = Field(
        None, validation_alias=AliasChoices("actor_user_id", "actor", "actor_id")
    )
    action: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    metadata: Any = None

    @property
    def created_at_dt(self) -> datetime | None:
        """created_at parsed as an aware datetime (None if missing or unparseable)."""
        if not self.created_at:
            return None
        try:
            parsed = datetime.fromisoformat(self.created_at.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


class AuditTrail(BaseModel):
    """A fresh read of a case's audit trail, newest first."""
    model_config = ConfigDict(frozen=True)

    case_id: str | None = None
    state: AuditTrailState
    entries: tuple[AuditLogEntry, ...] = ()
    error: str | None = None
    message: str | None = None
