"""Identity resolver - caller profile + verified org membership → Identity.

Resolution always hits the network (profile, then membership). A failed
membership call still produces an identity, just one with org_not_set and an
UNKNOWN role, so read-only screens stay usable. A failed profile call falls back
to the last identity resolved for this session.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from ocm.core.errors import GatewayError, raise_for_rpc_error, user_message
from ocm.enums import IdentityState, Role
from ocm.schemas.auth import AuthUser, Identity, IdentityResult, OrgContext, Session
from ocm.schemas.base import parse_rows
from ocm.services.gateway import Gateway
from ocm.services.session_service import SessionStore

logger = logging.getLogger(__name__)

ORG_CONTEXT_RPC = "get_current_org_context"


def merge_identity(user: AuthUser, membership: OrgContext | None) -> Identity:
    """
    Combine a verified profile with the membership record (if any).

    The role only ever comes from the membership record; token claims and
    profile metadata are not trusted for it.
    """
    platform_admin = user.platform_admin or bool(membership and membership.is_platform_admin)
    if membership is None:
        return Identity(
            email=user.email,
            role=Role.UNKNOWN,
            org_not_set=True,
            platform_admin=platform_admin,
        )
    return Identity(
        email=user.email,
        role=Role.parse(membership.role),
        org_id=membership.org_id,
        org_name=membership.org_name,
        org_not_set=False,
        platform_admin=platform_admin,
    )


def parse_membership(payload: Any) -> OrgContext | None:
    """First membership row with an org, or None when no membership came back."""
    raise_for_rpc_error(payload, ORG_CONTEXT_RPC)
    for row in parse_rows(OrgContext, payload):
        if row.org_id:
            return row
    return None


class IdentityResolver:
    """Resolves (and caches for fallback) the caller's Identity."""

    def __init__(self, gateway: Gateway, sessions: SessionStore) -> None:
        self.gateway = gateway
        self.sessions = sessions

    def cached_identity(self) -> Identity | None:
        """Last resolved identity, without any network call."""
        return self.sessions.load_identity()

    async def _fetch_profile(self, session: Session) -> AuthUser:
        payload = await self.gateway.get_auth_user(session)
        return AuthUser.model_validate(payload or {})

    async def _fetch_membership(self, session: Session) -> OrgContext | None:
        payload = await self.gateway.get_current_org_context(session)
        return parse_membership(payload)

    async def resolve_identity(self, session: Session | None = None) -> IdentityResult:
        """Refresh the identity. Issues the profile and membership calls every time."""
        current = session or self.sessions.load()
        if current is None:
            return IdentityResult(
                state=IdentityState.UNRESOLVED,
                profile_error=user_message(GatewayError("Access denied: not signed in")),
            )

        try:
            user = await self._fetch_profile(current)
        except (GatewayError, ValidationError) as exc:
            logger.info("Profile fetch failed; falling back to cached identity")
            profile_error = user_message(exc)
            cached = self.cached_identity()
            if cached is None:
                return IdentityResult(state=IdentityState.ERROR, profile_error=profile_error)
            return IdentityResult(
                state=IdentityState.RESOLVED,
                identity=cached,
                profile_error=profile_error,
            )

        membership_error: str | None = None
        try:
            membership = await self._fetch_membership(current)
        except (GatewayError, ValidationError) as exc:
            logger.info("Membership lookup failed; identity resolved without org")
            membership = None
            membership_error = user_message(exc)

        identity = merge_identity(user, membership)
        self.sessions.save_identity(identity)
        return IdentityResult(
            state=IdentityState.RESOLVED,
            identity=identity,
            membership_error=membership_error,
        )

    async def identity_or_cached(self, session: Session | None = None) -> Identity | None:
        """Resolved identity, or the cached one when resolution produced nothing."""
        result = await self.resolve_identity(session)
        return result.identity if result.identity is not None else self.cached_identity()
