"""Structured logging helpers (token-safe)."""

import logging
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_log_context(
    *,
    case_id: str | None = None,
    org_id: str | None = None,
    action: str | None = None,
    status: int | str | None = None,
    path: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict without credentials or emails."""
    context: dict[str, Any] = {}
    if case_id:
        context["case_id"] = case_id
    if org_id:
        context["org_id"] = org_id
    if action:
        context["action"] = action
    if status is not None:
        context["status"] = status
    if path:
        context["path"] = path
    if method:
        context["method"] = method
    return context


def configure_logging(level: str = "WARNING") -> None:
    """Configure root logging for the CLI process."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.WARNING),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
