"""HTTP helpers shared by gateway calls (URL building, decoding, error mapping)."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import httpx

from ocm.core.errors import GatewayError
from ocm.core.structured_logging import build_log_context

logger = logging.getLogger(__name__)


def clean_query(query: Mapping[str, Any] | None) -> dict[str, str]:
    """Drop None values and stringify the rest (httpx params)."""
    if not query:
        return {}
    return {key: str(value) for key, value in query.items() if value is not None}


def build_url(base_url: str, path: str) -> str:
    """Join a gateway base URL and an absolute path."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def eq(value: Any) -> str | None:
    """PostgREST equality filter, or None when the value is empty."""
    if value is None or value == "":
        return None
    return f"eq.{value}"


def decode_payload(response: httpx.Response, path: str) -> Any:
    """Decode a JSON body; empty bodies decode to None."""
    text = response.text
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError as exc:
        logger.warning(
            "Gateway returned a non-JSON body",
            extra=build_log_context(path=path, status=response.status_code),
        )
        raise GatewayError(
            "Malformed gateway response",
            status=response.status_code,
            path=path,
            from_response=True,
        ) from exc


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    path: str,
    headers: Mapping[str, str],
    query: Mapping[str, Any] | None = None,
    body: Any = None,
    timeout: float | None = None,
) -> Any:
    """
    Issue one request and return the decoded JSON payload.

    Non-2xx responses raise GatewayError carrying status and body. Timeouts and
    transport failures raise GatewayError with transport=True. Nothing is retried
    here; retrying is always a manual decision of the caller.
    """
    request_kwargs: dict[str, Any] = {
        "headers": dict(headers),
        "params": clean_query(query),
    }
    if body is not None:
        request_kwargs["json"] = body
    if timeout is not None:
        request_kwargs["timeout"] = timeout

    try:
        response = await client.request(method, url, **request_kwargs)
    except (httpx.TimeoutException, httpx.RequestError) as exc:
        logger.warning(
            "Gateway request aborted",
            extra=build_log_context(path=path, method=method),
            exc_info=exc,
        )
        raise GatewayError.from_transport(exc, path=path) from exc

    if response.is_success:
        return decode_payload(response, path)

    try:
        payload = decode_payload(response, path)
    except GatewayError:
        payload = None
    logger.info(
        "Gateway request failed with %s",
        response.status_code,
        extra=build_log_context(path=path, method=method, status=response.status_code),
    )
    raise GatewayError.from_response(response.status_code, payload, path=path)
