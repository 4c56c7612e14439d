"""Authentication and identity schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ocm.enums import IdentityState, Role
from ocm.schemas.base import GatewayModel


class Session(BaseModel):
    """
    Bearer credential for the current caller.

    Owned by the session store; it only ever leaves the process as an
    Authorization header value.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1, repr=False)
    refresh_token: str | None = Field(None, repr=False)
    expires_in: int | None = None
    token_type: str = "bearer"

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"


class TokenResponse(GatewayModel):
    """Response of POST /auth/v1/token."""
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None

    def to_session(self) -> Session:
        return Session(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_in=self.expires_in,
            token_type=self.token_type or "bearer",
        )


class AuthUser(GatewayModel):
    """Caller profile from GET /auth/v1/user."""
    id: str | None = None
    email: str | None = None
    app_metadata: dict[str, Any] = Field(default_factory=dict)
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def platform_admin(self) -> bool:
        return self.app_metadata.get("platform_admin") is True


class OrgContext(GatewayModel):
    """Row returned by the get_current_org_context RPC."""
    org_id: str | None = None
    org_name: str | None = None
    role: str | None = None
    is_platform_admin: bool | None = None


class Identity(BaseModel):
    """
    Display-safe view of the current caller.

    Derived, never authoritative. org_not_set is True exactly when no
    membership record was returned; role is UNKNOWN unless the membership
    record verified it.
    """
    model_config = ConfigDict(frozen=True)

    email: str | None = None
    role: Role = Role.UNKNOWN
    org_id: str | None = None
    org_name: str | None = None
    org_not_set: bool = True
    platform_admin: bool = False


class IdentityResult(BaseModel):
    """Tagged outcome of identity resolution."""
    model_config = ConfigDict(frozen=True)

    state: IdentityState = IdentityState.UNRESOLVED
    identity: Identity | None = None
    membership_error: str | None = None
    profile_error: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.state == IdentityState.RESOLVED and self.identity is not None
