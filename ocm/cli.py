"""CLI for the offboarding case-management backend."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Coroutine

import click
import httpx
from pydantic import ValidationError

from ocm.core.async_utils import run_async
from ocm.core.config import settings
from ocm.core.errors import GatewayError, user_message
from ocm.core.lifecycle import TransitionTable, get_lifecycle
from ocm.core.structured_logging import configure_logging
from ocm.enums import CaseStatus
from ocm.render import (
    indent,
    render_access_check,
    render_audit,
    render_case_detail,
    render_case_row,
    render_evidence,
    render_identity,
    render_operations,
    render_org_inspection,
    render_readiness,
    render_reporting_sanity,
    render_task,
    render_user_inspection,
)
from ocm.schemas.auth import Identity
from ocm.schemas.case import CaseCreate
from ocm.schemas.task import EvidenceCreate, TaskCreate
from ocm.services.admin_service import AdminService
from ocm.services.audit_service import AuditMirror
from ocm.services.auth_service import AuthService
from ocm.services.case_detail_service import CaseDetailController, CaseDetailState
from ocm.services.case_service import CaseService
from ocm.services.config_service import ConfigService, GatewayConfig
from ocm.services.gateway import Gateway
from ocm.services.identity_service import IdentityResolver
from ocm.services.lifecycle_service import (
    NO_LONGER_VISIBLE_MESSAGE,
    READINESS_BLOCK_MESSAGE,
    CaseLifecycleController,
)
from ocm.services.readiness_service import ReadinessMirror, summarize_readiness
from ocm.services.reporting_service import ReportingService
from ocm.services.session_service import JsonFileStore, KeyValueStore, SessionStore

NOT_CONFIGURED_MESSAGE = (
    "Gateway not configured. Run: ocm config set --base-url <url> --anon-key <key>"
)
SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."
COMMAND_TIMEOUT_MESSAGE = "Command timed out after {seconds:g}s. Check your connection and try again."


def echo_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


def fail(message: str) -> None:
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


class AppContext:
    """Per-invocation wiring: local state, config, lifecycle and gateway factory."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        lifecycle: TransitionTable,
        base_url: str | None = None,
        anon_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        command_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.sessions = SessionStore(store)
        self.config = ConfigService(store)
        self.lifecycle = lifecycle
        self.base_url = base_url
        self.anon_key = anon_key
        self.transport = transport
        self.command_timeout = command_timeout or settings.COMMAND_TIMEOUT_SECONDS

    async def resolve_config(self) -> GatewayConfig:
        return await self.config.load(base_url=self.base_url, anon_key=self.anon_key)

    @asynccontextmanager
    async def gateway(self) -> AsyncIterator[Gateway]:
        config = await self.resolve_config()
        if not config.is_complete:
            raise ValueError(NOT_CONFIGURED_MESSAGE)

        def _on_unauthorized() -> None:
            click.echo(SESSION_EXPIRED_MESSAGE, err=True)

        async with Gateway(
            config, self.sessions, transport=self.transport, on_unauthorized=_on_unauthorized
        ) as gateway:
            yield gateway

    async def identity(self, gateway: Gateway) -> Identity | None:
        return await IdentityResolver(gateway, self.sessions).identity_or_cached()

    def run(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Run one command; failures print the classified message and exit non-zero."""
        try:
            return run_async(coro, timeout=self.command_timeout)
        except TimeoutError:
            fail(COMMAND_TIMEOUT_MESSAGE.format(seconds=self.command_timeout))
        except GatewayError as exc:
            fail(user_message(exc))
        except ValidationError as exc:
            fail(f"Invalid input: {exc.errors()[0].get('msg', 'validation error')}")
        except ValueError as exc:
            fail(str(exc))


pass_app = click.make_pass_decorator(AppContext)


@click.group()
@click.option("--base-url", default=None, help="Gateway base URL (persisted when given)")
@click.option("--anon-key", default=None, help="Gateway anonymous API key (persisted when given)")
@click.option("--state-file", default=None, type=click.Path(dir_okay=False), help="Local state file")
@click.option(
    "--lifecycle",
    default=None,
    type=click.Choice(["review", "simple"]),
    help="Case lifecycle configuration (default: OCM_CASE_LIFECYCLE)",
)
@click.option("--log-level", default=None, help="Logging level (default: OCM_LOG_LEVEL)")
@click.pass_context
def cli(
    ctx: click.Context,
    base_url: str | None,
    anon_key: str | None,
    state_file: str | None,
    lifecycle: str | None,
    log_level: str | None,
):
    """Offboarding case-management CLI."""
    configure_logging(log_level or settings.LOG_LEVEL)
    if ctx.obj is None:
        store = JsonFileStore(Path(state_file).expanduser() if state_file else settings.state_path)
        ctx.obj = AppContext(
            store,
            lifecycle=get_lifecycle(lifecycle or settings.CASE_LIFECYCLE),
            base_url=base_url,
            anon_key=anon_key,
        )


# =============================================================================
# Session and identity
# =============================================================================


@cli.command()
@click.option("--email", required=True, help="Account email")
@click.password_option("--password", confirmation_prompt=False, help="Account password")
@pass_app
def login(app: AppContext, email: str, password: str):
    """Sign in with email and password."""

    async def _run():
        async with app.gateway() as gateway:
            auth = AuthService(gateway, app.sessions)
            await auth.sign_in_with_password(email, password)
            result = await auth.identity.resolve_identity()
        click.echo("✓ Signed in")
        echo_lines(indent(render_identity(result)))

    app.run(_run())


@cli.command("magic-link")
@click.option("--email", required=True, help="Account email")
@click.option("--redirect-to", default=None, help="Where the link should land")
@pass_app
def magic_link(app: AppContext, email: str, redirect_to: str | None):
    """Email a sign-in link."""

    async def _run():
        async with app.gateway() as gateway:
            await AuthService(gateway, app.sessions).send_magic_link(email, redirect_to)
        click.echo(f"✓ Magic link sent to {email}")

    app.run(_run())


@cli.command()
@pass_app
def logout(app: AppContext):
    """Clear the local session and cached identity."""
    app.sessions.clear()
    click.echo("✓ Signed out")


@cli.command()
@pass_app
def whoami(app: AppContext):
    """Resolve and show the current identity."""

    async def _run():
        async with app.gateway() as gateway:
            result = await IdentityResolver(gateway, app.sessions).resolve_identity()
        echo_lines(render_identity(result))

    app.run(_run())


@cli.command("redeem-invite")
@click.argument("code")
@pass_app
def redeem_invite(app: AppContext, code: str):
    """Redeem an org invite code."""

    async def _run():
        async with app.gateway() as gateway:
            redemption, result = await AuthService(gateway, app.sessions).redeem_invite(code)
        click.echo("✓ Invite redeemed")
        if redemption is not None and redemption.org_id:
            click.echo(f"  Org: {redemption.org_id} ({redemption.role or 'unknown role'})")
        echo_lines(indent(render_identity(result)))

    app.run(_run())


# =============================================================================
# Cases
# =============================================================================


def build_case_detail(app: AppContext, gateway: Gateway, identity: Identity | None) -> CaseDetailController:
    cases = CaseService(gateway, app.lifecycle)
    return CaseDetailController(
        cases,
        CaseLifecycleController(cases, app.lifecycle),
        ReadinessMirror(cases),
        AuditMirror(gateway),
        identity=identity,
    )


class CaseDetailView:
    """Re-renders whenever the controller publishes a new state."""

    def __init__(self) -> None:
        self.renders = 0

    def __call__(self, state: CaseDetailState) -> None:
        self.renders += 1
        if state.busy:
            click.echo(state.status_message)
            return
        if self.renders > 1:
            click.echo("")
        echo_lines(render_case_detail(state))


@cli.group()
def cases():
    """Offboarding cases."""
    pass


@cases.command("list")
@click.option("--org-id", default=None, help="Filter by org (default: all visible)")
@click.option("--limit", type=int, default=None, help="Maximum rows")
@pass_app
def list_cases(app: AppContext, org_id: str | None, limit: int | None):
    """List visible cases."""

    async def _run():
        async with app.gateway() as gateway:
            rows = await CaseService(gateway, app.lifecycle).list_cases(org_id=org_id, limit=limit)
        if not rows:
            click.echo("No cases found.")
        for row in rows:
            click.echo(render_case_row(row))

    app.run(_run())


@cases.command("show")
@click.argument("case_id")
@pass_app
def show_case(app: AppContext, case_id: str):
    """Show a case with its actions, readiness and audit trail."""

    async def _run():
        async with app.gateway() as gateway:
            identity = await app.identity(gateway)
            controller = build_case_detail(app, gateway, identity)
            controller.subscribe(CaseDetailView())
            state = await controller.load(case_id)
        return state.case is not None

    if not app.run(_run()):
        sys.exit(1)


@cases.command("create")
@click.option("--employee-name", required=True, help="Departing employee")
@click.option("--org-id", default=None, help="Org (default: current org)")
@click.option("--case-no", default=None, help="Case number")
@click.option("--dept", default=None, help="Department")
@click.option("--position", default=None, help="Position")
@click.option("--last-working-day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@pass_app
def create_case(
    app: AppContext,
    employee_name: str,
    org_id: str | None,
    case_no: str | None,
    dept: str | None,
    position: str | None,
    last_working_day,
):
    """Create a case in the lifecycle's initial status."""

    async def _run():
        async with app.gateway() as gateway:
            identity = await app.identity(gateway)
            target_org = org_id or (identity.org_id if identity else None)
            if not target_org:
                raise ValueError("Provide an org ID.")
            data = CaseCreate(
                org_id=target_org,
                employee_name=employee_name,
                case_no=case_no,
                dept=dept,
                position=position,
                last_working_day=last_working_day.date() if last_working_day else None,
            )
            created = await CaseService(gateway, app.lifecycle).create_case(data)
        if created is None:
            click.echo("✓ Case created")
        else:
            click.echo(f"✓ Case created: {created.id}")

    app.run(_run())


@cases.command("transition")
@click.argument("case_id")
@click.argument("to_status")
@pass_app
def transition_case(app: AppContext, case_id: str, to_status: str):
    """Move a case to another status, then show the re-fetched case."""

    async def _run():
        async with app.gateway() as gateway:
            identity = await app.identity(gateway)
            controller = build_case_detail(app, gateway, identity)
            state = await controller.load(case_id)
            if state.case is None:
                raise GatewayError(state.error.message if state.error else "Case not found")
            option = next((o for o in state.transitions if o.to_status == to_status), None)
            if option is None:
                available = ", ".join(o.to_status for o in state.transitions) or "none"
                raise ValueError(f"No '{to_status}' action from this status (available: {available}).")
            if not state.is_enabled(option):
                raise ValueError(f"{option.label} is not available for your role or this case.")
            controller.subscribe(CaseDetailView())
            outcome = await controller.transition(to_status)
        return outcome.error.message if outcome.error else None

    error = app.run(_run())
    if error:
        fail(error)


@cases.command("close")
@click.argument("case_id")
@pass_app
def close_case(app: AppContext, case_id: str):
    """Close a case (same role and readiness checks as the Close action)."""

    async def _run():
        async with app.gateway() as gateway:
            identity = await app.identity(gateway)
            cases = CaseService(gateway, app.lifecycle)
            controller = CaseLifecycleController(cases, app.lifecycle)
            case = await cases.require_case(case_id)
            summary = None
            if app.lifecycle.readiness_gate and case.org_id:
                summary = summarize_readiness(await cases.list_tasks(org_id=case.org_id, case_id=case.id))
            options = controller.available_transitions(case.status)
            option = next((o for o in options if o.to_status == CaseStatus.CLOSED.value), None)
            if option is not None and not controller.transition_allowed(case, option, identity, summary):
                if summary is not None and summary.required_tasks_incomplete:
                    return READINESS_BLOCK_MESSAGE
                return f"{option.label} is not available for your role or this case."
            outcome = await controller.close_case(case, summary)
            if outcome.error is not None:
                return outcome.error.message
            if not outcome.visible:
                click.echo(f"✓ {NO_LONGER_VISIBLE_MESSAGE}")
                return None
            readiness = await ReadinessMirror(cases).load(outcome.case)
            trail = await AuditMirror(gateway).load(case_id)
        click.echo(f"✓ Case status: {outcome.case.status if outcome.case else 'unknown'}")
        echo_lines(render_readiness(readiness))
        echo_lines(render_audit(trail))
        return None

    error = app.run(_run())
    if error:
        fail(error)


# =============================================================================
# Tasks and evidence
# =============================================================================


@cli.group()
def tasks():
    """Case tasks."""
    pass


@tasks.command("list")
@click.argument("case_id")
@pass_app
def list_tasks(app: AppContext, case_id: str):
    """List a case's tasks with its readiness summary."""

    async def _run():
        async with app.gateway() as gateway:
            cases = CaseService(gateway, app.lifecycle)
            case = await cases.require_case(case_id)
            rows = await cases.list_tasks(org_id=case.org_id, case_id=case.id)
            readiness = await ReadinessMirror(cases).load(case)
        if not rows:
            click.echo("No tasks found.")
        for row in rows:
            click.echo(render_task(row))
        echo_lines(render_readiness(readiness))

    app.run(_run())


@tasks.command("create")
@click.argument("case_id")
@click.option("--title", required=True, help="Task title")
@click.option("--required/--optional", "is_required", default=False, help="Required for closure")
@pass_app
def create_task(app: AppContext, case_id: str, title: str, is_required: bool):
    """Add a task to a case."""

    async def _run():
        async with app.gateway() as gateway:
            cases = CaseService(gateway, app.lifecycle)
            case = await cases.require_case(case_id)
            if not case.org_id:
                raise ValueError("Case has no org; cannot create a task.")
            task = await cases.create_task(
                TaskCreate(org_id=case.org_id, case_id=case.id, title=title, is_required=is_required)
            )
            trail = await AuditMirror(gateway).load(case.id)
        click.echo(f"✓ Task created: {task.id if task and task.id else title}")
        echo_lines(render_audit(trail))

    app.run(_run())


@cli.group()
def evidence():
    """Task evidence."""
    pass


@evidence.command("list")
@click.argument("task_id")
@click.option("--org-id", default=None, help="Filter by org")
@pass_app
def list_evidence(app: AppContext, task_id: str, org_id: str | None):
    """List evidence attached to a task."""

    async def _run():
        async with app.gateway() as gateway:
            rows = await CaseService(gateway, app.lifecycle).list_evidence(org_id=org_id, task_id=task_id)
        if not rows:
            click.echo("No evidence found.")
        for row in rows:
            click.echo(render_evidence(row))

    app.run(_run())


@evidence.command("add")
@click.argument("task_id")
@click.option("--note", required=True, help="Evidence note")
@click.option("--org-id", default=None, help="Org (default: current org)")
@click.option("--case-id", default=None, help="Case to refresh the audit trail for")
@pass_app
def add_evidence(app: AppContext, task_id: str, note: str, org_id: str | None, case_id: str | None):
    """Attach evidence to a task."""

    async def _run():
        async with app.gateway() as gateway:
            identity = await app.identity(gateway)
            target_org = org_id or (identity.org_id if identity else None)
            if not target_org:
                raise ValueError("Provide an org ID.")
            created = await CaseService(gateway, app.lifecycle).create_evidence(
                EvidenceCreate(org_id=target_org, task_id=task_id, note=note)
            )
            trail = await AuditMirror(gateway).load(case_id) if case_id else None
        click.echo(f"✓ Evidence added: {created.id if created else task_id}")
        if trail is not None:
            echo_lines(render_audit(trail))

    app.run(_run())


@cli.command()
@click.argument("case_id")
@pass_app
def audit(app: AppContext, case_id: str):
    """Show a case's audit trail."""

    async def _run():
        async with app.gateway() as gateway:
            trail = await AuditMirror(gateway).load(case_id)
        echo_lines(render_audit(trail))

    app.run(_run())


@cli.command("assign-reviewer")
@click.argument("case_id")
@click.argument("reviewer_user_id")
@pass_app
def assign_reviewer(app: AppContext, case_id: str, reviewer_user_id: str):
    """Assign a reviewer to a case (owner/admin)."""

    async def _run():
        async with app.gateway() as gateway:
            identity = await app.identity(gateway)
            await AdminService(gateway, identity).assign_reviewer(
                case_id=case_id, reviewer_user_id=reviewer_user_id
            )
            trail = await AuditMirror(gateway).load(case_id)
        click.echo(f"✓ Reviewer {reviewer_user_id} assigned to {case_id}")
        echo_lines(render_audit(trail))

    app.run(_run())


@cli.command()
@pass_app
def reporting(app: AppContext):
    """Operations dashboard: SLA and escalation per case."""

    async def _run():
        async with app.gateway() as gateway:
            report = await ReportingService(gateway).load_operations_report()
        echo_lines(render_operations(report))

    app.run(_run())


# =============================================================================
# Admin tools
# =============================================================================


@cli.group()
def admin():
    """Privileged inspection and membership tools."""
    pass


@admin.command("inspect-user")
@click.option("--email", default=None, help="User email")
@click.option("--user-id", default=None, help="User ID")
@pass_app
def inspect_user(app: AppContext, email: str | None, user_id: str | None):
    """Inspect a user and their memberships (platform admin)."""

    async def _run():
        async with app.gateway() as gateway:
            service = AdminService(gateway, await app.identity(gateway))
            result = await service.inspect_user(email=email, user_id=user_id)
        echo_lines(render_user_inspection(result))

    app.run(_run())


@admin.command("inspect-org")
@click.argument("org_id")
@pass_app
def inspect_org(app: AppContext, org_id: str):
    """Inspect org membership and case counts (platform admin)."""

    async def _run():
        async with app.gateway() as gateway:
            service = AdminService(gateway, await app.identity(gateway))
            result = await service.inspect_org(org_id)
        echo_lines(render_org_inspection(result))

    app.run(_run())


@admin.command("access-check")
@click.option("--user-id", required=True, help="User ID")
@click.option("--case-id", required=True, help="Case ID")
@pass_app
def access_check(app: AppContext, user_id: str, case_id: str):
    """Explain whether a user can see a case (platform admin)."""

    async def _run():
        async with app.gateway() as gateway:
            service = AdminService(gateway, await app.identity(gateway))
            result = await service.access_check(user_id=user_id, case_id=case_id)
        echo_lines(render_access_check(result))

    app.run(_run())


@admin.command("reporting-sanity")
@click.argument("org_id")
@pass_app
def reporting_sanity(app: AppContext, org_id: str):
    """Compare case counts with reporting view counts (platform admin)."""

    async def _run():
        async with app.gateway() as gateway:
            service = AdminService(gateway, await app.identity(gateway))
            result = await service.reporting_sanity(org_id)
        echo_lines(render_reporting_sanity(result))

    app.run(_run())


@admin.command("orgs")
@pass_app
def manageable_orgs(app: AppContext):
    """List orgs you can manage."""

    async def _run():
        async with app.gateway() as gateway:
            rows = await AdminService(gateway, await app.identity(gateway)).list_manageable_orgs()
        if not rows:
            click.echo("No manageable orgs.")
        for row in rows:
            click.echo(f"{row.org_id}  {row.org_name or '-'}  ({row.role or 'unknown'})")

    app.run(_run())


@admin.command("search-users")
@click.argument("email_query")
@pass_app
def search_users(app: AppContext, email_query: str):
    """Search users by email."""

    async def _run():
        async with app.gateway() as gateway:
            rows = await AdminService(gateway, await app.identity(gateway)).search_users(email_query)
        if not rows:
            click.echo("No users found.")
        for row in rows:
            click.echo(f"{row.user_id}  {row.email or '-'}")

    app.run(_run())


@admin.command("roles")
@pass_app
def list_roles(app: AppContext):
    """List assignable roles."""

    async def _run():
        async with app.gateway() as gateway:
            rows = await AdminService(gateway, await app.identity(gateway)).list_roles()
        for row in rows:
            click.echo(f"{row.role}  {row.label or ''}".rstrip())

    app.run(_run())


@admin.command("assign-user")
@click.option("--user-id", required=True, help="User ID")
@click.option("--org-id", required=True, help="Org ID")
@click.option("--role", required=True, help="Role to grant")
@pass_app
def assign_user(app: AppContext, user_id: str, org_id: str, role: str):
    """Assign a user to an org with a role."""

    async def _run():
        async with app.gateway() as gateway:
            resolver = IdentityResolver(gateway, app.sessions)
            service = AdminService(gateway, await resolver.identity_or_cached())
            await service.assign_user_to_org(user_id=user_id, org_id=org_id, role=role)
            result = await resolver.resolve_identity()
        click.echo(f"✓ Assigned {user_id} to {org_id} as {role}")
        echo_lines(indent(render_identity(result)))

    app.run(_run())


# =============================================================================
# Gateway configuration
# =============================================================================


def mask_key(key: str | None) -> str:
    if not key:
        return "-"
    return f"{key[:4]}...{key[-4:]}" if len(key) > 12 else "****"


@cli.group("config")
def config_group():
    """Gateway configuration."""
    pass


@config_group.command("show")
@pass_app
def config_show(app: AppContext):
    """Show the effective gateway configuration."""

    async def _run():
        config = await app.resolve_config()
        click.echo(f"Base URL: {config.base_url or '-'}")
        click.echo(f"Anon key: {mask_key(config.anon_key)}")
        click.echo(f"Lifecycle: {app.lifecycle.name}")
        if not config.is_complete:
            click.echo(NOT_CONFIGURED_MESSAGE)

    app.run(_run())


@config_group.command("set")
@click.option("--base-url", required=True, help="Gateway base URL")
@click.option("--anon-key", required=True, help="Gateway anonymous API key")
@pass_app
def config_set(app: AppContext, base_url: str, anon_key: str):
    """Persist the gateway configuration."""
    app.config.save(GatewayConfig(base_url=base_url.strip(), anon_key=anon_key.strip()))
    click.echo("✓ Gateway configuration saved")


@config_group.command("clear")
@pass_app
def config_clear(app: AppContext):
    """Forget the persisted gateway configuration."""
    app.config.clear()
    click.echo("✓ Gateway configuration cleared")


if __name__ == "__main__":
    cli()
