"""Auth service - sign-in, magic links, logout and invite redemption."""

from __future__ import annotations

import logging

from ocm.core.config import settings
from ocm.core.errors import GatewayError, raise_for_rpc_error
from ocm.schemas.admin import InviteRedemption
from ocm.schemas.auth import IdentityResult, Session, TokenResponse
from ocm.schemas.base import parse_rows
from ocm.services.gateway import Gateway
from ocm.services.identity_service import IdentityResolver
from ocm.services.session_service import SessionStore

logger = logging.getLogger(__name__)

MISSING_INVITE_CODE = "Invite code is required."


class AuthService:
    """Owns the session lifecycle: login saves, logout clears."""

    def __init__(self, gateway: Gateway, sessions: SessionStore) -> None:
        self.gateway = gateway
        self.sessions = sessions
        self.identity = IdentityResolver(gateway, sessions)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        payload = await self.gateway.sign_in_with_password(email.strip(), password)
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise GatewayError("Sign-in response did not include an access token", payload=payload)
        session = TokenResponse.model_validate(payload).to_session()
        self.sessions.save(session)
        logger.info("Signed in")
        return session

    async def send_magic_link(self, email: str, redirect_to: str | None = None) -> None:
        await self.gateway.send_magic_link(
            email.strip(), redirect_to or settings.MAGIC_LINK_REDIRECT or None
        )
        logger.info("Magic link requested")

    def logout(self) -> None:
        self.sessions.clear()
        logger.info("Signed out")

    async def redeem_invite(self, code: str) -> tuple[InviteRedemption | None, IdentityResult]:
        """Redeem an invite code, then re-resolve identity (membership changed)."""
        code = (code or "").strip()
        if not code:
            raise ValueError(MISSING_INVITE_CODE)
        payload = await self.gateway.redeem_invite(code)
        raise_for_rpc_error(payload, "redeem_invite")
        rows = parse_rows(InviteRedemption, payload)
        result = await self.identity.resolve_identity()
        return (rows[0] if rows else None), result
