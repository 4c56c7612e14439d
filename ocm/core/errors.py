"""Gateway error type and user-facing error classification.

The backend reports most business failures as free text (inside 4xx bodies or
RPC error rows) rather than machine-readable codes, so classification runs a
prioritized rule table over the lowercased detail text. Rule order is the
precedence: "not found" is checked before "access denied", which is checked
before validation and invite rules. First match wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from ocm.enums import ErrorKind

GENERIC_FAILURE_MESSAGE = "Request failed. Please try again."

# Keys inspected, in order, when pulling a human message out of an error body.
ERROR_DETAIL_KEYS = ("message", "error_description", "error", "error_message")


def extract_error_detail(payload: Any) -> str | None:
    """Return the first non-empty message string from an error payload."""
    if isinstance(payload, str):
        return payload.strip() or None
    if isinstance(payload, dict):
        for key in ERROR_DETAIL_KEYS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


class GatewayError(Exception):
    """
    A failed gateway call.

    status is the HTTP status (None for transport failures and for requests the
    client refused locally). transport is True when no response was received:
    timeouts, connection errors, aborted requests.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        payload: Any = None,
        code: str | None = None,
        path: str | None = None,
        transport: bool = False,
        from_response: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload
        self.code = code
        self.path = path
        self.transport = transport
        self._from_response = from_response

    @classmethod
    def from_response(cls, status: int, payload: Any, path: str | None = None) -> "GatewayError":
        """Build an error for a non-2xx response."""
        code = payload.get("code") if isinstance(payload, dict) else None
        return cls(
            "Gateway request failed",
            status=status,
            payload=payload,
            code=code if isinstance(code, str) else None,
            path=path,
            from_response=True,
        )

    @classmethod
    def from_transport(cls, exc: Exception, path: str | None = None) -> "GatewayError":
        """Build an error for a request that never produced a response."""
        return cls(
            f"Gateway request aborted: {exc.__class__.__name__}",
            path=path,
            transport=True,
        )

    @property
    def detail(self) -> str | None:
        """Human message reported by the backend (or the local refusal text)."""
        detail = extract_error_detail(self.payload)
        if detail:
            return detail
        if self.transport or self._from_response:
            return None
        return self.message.strip() or None

    def __repr__(self) -> str:
        return (
            f"GatewayError(status={self.status!r}, code={self.code!r}, "
            f"path={self.path!r}, transport={self.transport!r})"
        )


@dataclass(frozen=True)
class ErrorRule:
    """One row of the classification table."""
    pattern: re.Pattern[str]
    kind: ErrorKind
    render: Callable[[re.Match[str]], str]


def _fixed(message: str) -> Callable[[re.Match[str]], str]:
    return lambda _match: message


def _not_found(match: re.Match[str]) -> str:
    entity = match.group("entity")
    if entity:
        return f"Not found: {entity} not found."
    return "Not found."


ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(re.compile(r"case not found"), ErrorKind.NOT_FOUND, _fixed("Not found: case not found.")),
    ErrorRule(
        re.compile(r"(?:(?P<entity>user|org|organization|invite|task|reviewer)[\s_]+)?not[\s_]+found"),
        ErrorKind.NOT_FOUND,
        _not_found,
    ),
    ErrorRule(
        re.compile(r"access denied|insufficient|permission"),
        ErrorKind.ACCESS_DENIED,
        _fixed("Access denied."),
    ),
    ErrorRule(
        re.compile(r"reviewer not in org|reviewer must"),
        ErrorKind.VALIDATION,
        _fixed("reviewer not in org."),
    ),
    ErrorRule(re.compile(r"invalid role"), ErrorKind.VALIDATION, _fixed("invalid role.")),
    ErrorRule(re.compile(r"invalid code"), ErrorKind.VALIDATION, _fixed("invalid code.")),
    ErrorRule(
        re.compile(r"multi-org not supported"),
        ErrorKind.VALIDATION,
        _fixed("multi-org not supported."),
    ),
    ErrorRule(
        re.compile(r"jwt expired|token (?:is )?expired"),
        ErrorKind.ACCESS_DENIED,
        _fixed("Session expired. Please log in again."),
    ),
    ErrorRule(
        re.compile(r"expired"),
        ErrorKind.INVITE,
        _fixed("Invite expired. Ask an admin for a new invite."),
    ),
    ErrorRule(
        re.compile(r"already redeemed"),
        ErrorKind.INVITE,
        _fixed("Invite already redeemed."),
    ),
)


@dataclass(frozen=True)
class ClassifiedError:
    """A failure translated for display."""
    kind: ErrorKind
    message: str
    status: int | None = None


def classify_detail(detail: str | None, status: int | None = None) -> ClassifiedError:
    """Run the rule table over a raw detail string."""
    text = (detail or "").strip().lower()
    if not text:
        return ClassifiedError(ErrorKind.UNKNOWN, GENERIC_FAILURE_MESSAGE, status)
    for rule in ERROR_RULES:
        match = rule.pattern.search(text)
        if match:
            return ClassifiedError(rule.kind, rule.render(match), status)
    return ClassifiedError(ErrorKind.UNKNOWN, text, status)


def classify_error(error: BaseException) -> ClassifiedError:
    """
    Translate any exception raised by the core into a ClassifiedError.

    Transport failures are NETWORK and always safe to retry manually. Anything
    that isn't a GatewayError is treated as an unknown failure with generic copy.
    """
    if isinstance(error, GatewayError):
        if error.transport:
            return ClassifiedError(ErrorKind.NETWORK, GENERIC_FAILURE_MESSAGE, None)
        return classify_detail(error.detail, error.status)
    return ClassifiedError(ErrorKind.UNKNOWN, GENERIC_FAILURE_MESSAGE, None)


def user_message(error: BaseException) -> str:
    """Shortcut for the display message of a failure."""
    return classify_error(error).message


def status_label(error: BaseException | None) -> str:
    """Short status tag used in "unavailable (...)" copy: the HTTP status or 'error'."""
    status = getattr(error, "status", None)
    return str(status) if status is not None else "error"


def find_rpc_error_row(rows: Any) -> dict[str, Any] | None:
    """Return the structured error row of an RPC result, if it has one."""
    candidates = rows if isinstance(rows, list) else [rows]
    for row in candidates:
        if isinstance(row, dict) and (row.get("error_code") or row.get("error_message")):
            return row
    return None


def raise_for_rpc_error(rows: Any, function_name: str) -> Any:
    """Raise GatewayError when an RPC answered with an {error_code, error_message} row."""
    row = find_rpc_error_row(rows)
    if row is None:
        return rows
    code = row.get("error_code")
    message = row.get("error_message") or f"{function_name} failed"
    raise GatewayError(
        str(message),
        payload={"error_message": str(message), "error_code": code},
        code=str(code) if code else None,
        path=f"rpc/{function_name}",
    )
