"""Backend gateway - REST resources, named RPCs and auth endpoints.

Thin request wrappers. Every call carries the anonymous API key; everything
except the anonymous auth calls also carries the caller's bearer token. The
backend stays authoritative for permissions and state transitions.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from ocm.core.config import settings
from ocm.core.errors import GatewayError
from ocm.core.structured_logging import build_log_context
from ocm.schemas.auth import Session
from ocm.services.config_service import GatewayConfig
from ocm.services.http_service import build_url, eq, send_request
from ocm.services.session_service import SessionStore

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"
AUTH_PREFIX = "/auth/v1"

CASES_TABLE = "offboarding_cases"
TASKS_TABLE = "tasks"
EVIDENCE_TABLE = "evidence"
AUDIT_LOGS_TABLE = "audit_logs"
REPORTING_SLA_VIEW = "reporting_case_sla"
REPORTING_ESCALATION_VIEW = "reporting_case_escalation"

NOT_SIGNED_IN_MESSAGE = "Access denied: not signed in"


class Gateway:
    """
    Async client for the hosted backend.

    One httpx.AsyncClient per gateway; use it as an async context manager so
    that leaving the context aborts any request still in flight.
    """

    def __init__(
        self,
        config: GatewayConfig,
        sessions: SessionStore | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_unauthorized: Callable[[], None] | None = None,
    ) -> None:
        if not config.base_url:
            raise ValueError("base_url is required")
        if not config.anon_key:
            raise ValueError("anon_key is required")
        self.base_url = config.base_url
        self._anon_key = config.anon_key
        self.sessions = sessions
        self.timeout = timeout or settings.timeout
        self._on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def __aenter__(self) -> "Gateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    def _resolve_session(self, session: Session | None) -> Session:
        if session is not None:
            return session
        stored = self.sessions.load() if self.sessions else None
        if stored is None:
            raise GatewayError(NOT_SIGNED_IN_MESSAGE, status=None)
        return stored

    def _handle_unauthorized(self, path: str) -> None:
        logger.info("Bearer token rejected; clearing session", extra=build_log_context(path=path))
        if self.sessions is not None:
            self.sessions.clear()
        if self._on_unauthorized is not None:
            self._on_unauthorized()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        bearer: str,
        authenticated: bool,
        query: dict[str, Any] | None = None,
        body: Any = None,
        prefer_representation: bool = False,
    ) -> Any:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {bearer}",
            "Content-Type": "application/json",
        }
        if prefer_representation:
            headers["Prefer"] = "return=representation"
        logger.debug("Gateway %s %s", method, path)
        try:
            return await send_request(
                self._client,
                method,
                build_url(self.base_url, path),
                path=path,
                headers=headers,
                query=query,
                body=body,
            )
        except GatewayError as exc:
            if authenticated and exc.status == 401:
                self._handle_unauthorized(path)
            raise

    async def rest(
        self,
        method: str,
        resource: str,
        *,
        query: dict[str, Any] | None = None,
        body: Any = None,
        session: Session | None = None,
    ) -> Any:
        """Authenticated call against /rest/v1/<resource>."""
        current = self._resolve_session(session)
        return await self._send(
            method,
            f"{REST_PREFIX}/{resource}",
            bearer=current.access_token,
            authenticated=True,
            query=query,
            body=body,
            prefer_representation=True,
        )

    async def rpc(
        self,
        function_name: str,
        body: dict[str, Any] | None = None,
        *,
        session: Session | None = None,
    ) -> Any:
        """Authenticated POST /rest/v1/rpc/<function_name>."""
        current = self._resolve_session(session)
        return await self._send(
            "POST",
            f"{REST_PREFIX}/rpc/{function_name}",
            bearer=current.access_token,
            authenticated=True,
            body=body if body is not None else {},
            prefer_representation=True,
        )

    async def auth(
        self,
        method: str,
        endpoint: str,
        *,
        query: dict[str, Any] | None = None,
        body: Any = None,
        session: Session | None = None,
    ) -> Any:
        """Call /auth/v1/<endpoint>; anonymous (anon key as bearer) when no session is given."""
        return await self._send(
            method,
            f"{AUTH_PREFIX}/{endpoint}",
            bearer=session.access_token if session else self._anon_key,
            authenticated=session is not None,
            query=query,
            body=body,
        )

    # =========================================================================
    # Auth
    # =========================================================================

    async def sign_in_with_password(self, email: str, password: str) -> Any:
        if not email:
            raise ValueError("email is required")
        if not password:
            raise ValueError("password is required")
        return await self.auth(
            "POST",
            "token",
            query={"grant_type": "password"},
            body={"email": email, "password": password},
        )

    async def send_magic_link(self, email: str, redirect_to: str | None = None) -> Any:
        if not email:
            raise ValueError("email is required")
        body: dict[str, Any] = {"email": email, "create_user": True}
        if redirect_to:
            body["options"] = {"emailRedirectTo": redirect_to}
        return await self.auth("POST", "otp", body=body)

    async def get_auth_user(self, session: Session | None = None) -> Any:
        return await self.auth("GET", "user", session=self._resolve_session(session))

    async def get_current_org_context(self, session: Session | None = None) -> Any:
        return await self.rpc("get_current_org_context", {}, session=session)

    async def redeem_invite(self, code: str) -> Any:
        return await self.rpc("redeem_invite", {"p_code": code})

    # =========================================================================
    # Cases, tasks, evidence, audit
    # =========================================================================

    async def list_offboarding_cases(
        self,
        *,
        org_id: str | None = None,
        case_id: str | None = None,
        limit: int | None = None,
    ) -> Any:
        return await self.rest(
            "GET",
            CASES_TABLE,
            query={"select": "*", "org_id": eq(org_id), "id": eq(case_id), "limit": limit},
        )

    async def create_offboarding_case(self, body: dict[str, Any]) -> Any:
        return await self.rest("POST", CASES_TABLE, body=body)

    async def patch_case_status(self, case_id: str, to_status: str) -> Any:
        """Legacy direct status patch (simple lifecycle)."""
        if not case_id:
            raise ValueError("case_id is required")
        return await self.rest(
            "PATCH", CASES_TABLE, query={"id": eq(case_id)}, body={"status": to_status}
        )

    async def transition_case_status(self, case_id: str, to_status: str) -> Any:
        """Authoritative transition call of the review lifecycle."""
        if not case_id:
            raise ValueError("case_id is required")
        return await self.rpc(
            "transition_offboarding_case_status",
            {"p_case_id": case_id, "p_to_status": to_status},
        )

    async def list_tasks(self, *, org_id: str | None = None, case_id: str | None = None) -> Any:
        return await self.rest(
            "GET",
            TASKS_TABLE,
            query={"select": "*", "org_id": eq(org_id), "case_id": eq(case_id)},
        )

    async def create_task(self, body: dict[str, Any]) -> Any:
        return await self.rest("POST", TASKS_TABLE, body=body)

    async def list_evidence(self, *, org_id: str | None = None, task_id: str | None = None) -> Any:
        return await self.rest(
            "GET",
            EVIDENCE_TABLE,
            query={"select": "*", "org_id": eq(org_id), "task_id": eq(task_id)},
        )

    async def create_evidence(self, body: dict[str, Any]) -> Any:
        return await self.rest("POST", EVIDENCE_TABLE, body=body)

    async def list_audit_logs(self, case_id: str) -> Any:
        if not case_id:
            raise ValueError("case_id is required")
        return await self.rest(
            "GET",
            AUDIT_LOGS_TABLE,
            query={"select": "*", "case_id": eq(case_id), "order": "created_at.desc"},
        )

    # =========================================================================
    # Reporting views
    # =========================================================================

    async def list_reporting_case_sla(self) -> Any:
        return await self.rest("GET", REPORTING_SLA_VIEW, query={"select": "*"})

    async def list_reporting_case_escalation(self) -> Any:
        return await self.rest("GET", REPORTING_ESCALATION_VIEW, query={"select": "*"})

    # =========================================================================
    # Privileged RPCs
    # =========================================================================

    async def admin_inspect_user(self, *, email: str | None = None, user_id: str | None = None) -> Any:
        return await self.rpc("admin_inspect_user", {"p_email": email, "p_user_id": user_id})

    async def admin_inspect_org(self, org_id: str | None) -> Any:
        return await self.rpc("admin_inspect_org", {"p_org_id": org_id})

    async def admin_access_check(self, *, user_id: str | None, case_id: str | None) -> Any:
        return await self.rpc("admin_access_check", {"p_user_id": user_id, "p_case_id": case_id})

    async def admin_reporting_sanity(self, org_id: str | None) -> Any:
        return await self.rpc("admin_reporting_sanity", {"p_org_id": org_id})

    async def owner_assign_case_reviewer(self, *, case_id: str, reviewer_user_id: str) -> Any:
        return await self.rpc(
            "owner_assign_case_reviewer",
            {"p_case_id": case_id, "p_reviewer_user_id": reviewer_user_id},
        )

    async def list_manageable_orgs(self) -> Any:
        return await self.rpc("list_manageable_orgs", {})

    async def search_users_by_email(self, email_query: str | None) -> Any:
        return await self.rpc("search_users_by_email", {"p_email_query": email_query})

    async def list_roles(self) -> Any:
        return await self.rpc("list_roles", {})

    async def assign_user_to_org(self, *, user_id: str, org_id: str, role: str) -> Any:
        return await self.rpc(
            "assign_user_to_org",
            {"p_user_id": user_id, "p_org_id": org_id, "p_role": role},
        )
