"""Shared base model for gateway rows."""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

RowT = TypeVar("RowT", bound="GatewayModel")


class GatewayModel(BaseModel):
    """Row returned by the gateway; unknown columns are ignored, numeric ids become strings."""
    model_config = ConfigDict(extra="ignore", frozen=True, coerce_numbers_to_str=True)


def parse_rows(model: type[RowT], payload: Any) -> list[RowT]:
    """Validate a gateway payload (list, single object or null) into rows."""
    if payload is None:
        return []
    items = payload if isinstance(payload, list) else [payload]
    return [model.model_validate(item) for item in items if isinstance(item, dict)]
