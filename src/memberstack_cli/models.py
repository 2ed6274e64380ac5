"""Canonical Pydantic models shared across memberstack-cli.

The models fall into three groups:

**Settings** -- :class:`Settings`, the explicit configuration value built
once by :func:`~memberstack_cli.config.resolve_settings` and handed to the
session facade and the GraphQL transport.

**OAuth protocol shapes** -- :class:`PKCEMaterial`, :class:`RegisteredClient`,
:class:`TokenSet` (token endpoint response) and :class:`CallbackResult`.

**Persisted and reported state** -- :class:`StoredTokens` (the on-disk token
file) and :class:`AuthStatus` (the read-only report behind ``auth status``).

All models use Pydantic v2.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_ISSUER = "https://mcp.memberstack.com"
DEFAULT_GRAPHQL_URL = "https://v2-api.memberstack.com/graphql"


# --- Settings ---


class Settings(BaseModel):
    """Effective configuration for one CLI invocation.

    Endpoint URLs default to paths under :attr:`issuer`; set them
    explicitly to point individual endpoints elsewhere.

    See Also:
        :func:`~memberstack_cli.config.resolve_settings` for the precedence
        chain that produces this value.
    """

    issuer: str = DEFAULT_ISSUER
    authorization_endpoint: Optional[str] = None
    token_endpoint: Optional[str] = None
    registration_endpoint: Optional[str] = None
    revocation_endpoint: Optional[str] = None
    resource: Optional[str] = Field(
        default=None, description="RFC 8707 resource indicator for the target API"
    )
    scope: str = "read write"
    client_name: str = "Memberstack CLI"
    callback_host: str = "127.0.0.1"
    callback_path: str = "/callback"
    callback_timeout: Optional[float] = Field(
        default=300.0,
        description="Seconds to wait for the browser redirect; None waits forever",
    )
    request_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    token_dir: Path = Field(default_factory=lambda: Path.home() / ".memberstack")
    token_file: str = "auth.json"
    graphql_url: str = DEFAULT_GRAPHQL_URL
    mode: str = Field(default="sandbox", description="API environment: sandbox or live")

    @property
    def authorize_url(self) -> str:
        return self.authorization_endpoint or f"{self.issuer}/oauth/authorize"

    @property
    def token_url(self) -> str:
        return self.token_endpoint or f"{self.issuer}/oauth/token"

    @property
    def register_url(self) -> str:
        return self.registration_endpoint or f"{self.issuer}/oauth/register"

    @property
    def revoke_url(self) -> str:
        return self.revocation_endpoint or f"{self.issuer}/oauth/revoke"

    @property
    def resource_indicator(self) -> str:
        return self.resource or f"{self.issuer}/mcp"

    @property
    def token_path(self) -> Path:
        return self.token_dir / self.token_file


# --- OAuth protocol shapes ---


class PKCEMaterial(BaseModel):
    """Per-attempt PKCE verifier/challenge pair plus the anti-CSRF state.

    Never persisted. ``state`` is unrelated to PKCE; it only binds the
    authorization request to its callback.
    """

    code_verifier: str
    code_challenge: str
    state: str


class RegisteredClient(BaseModel):
    """Registration endpoint response for a public (secret-less) client."""

    model_config = ConfigDict(extra="allow")

    client_id: str
    client_secret: Optional[str] = None


class TokenSet(BaseModel):
    """Token endpoint response for the code and refresh grants."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int
    token_type: str = "Bearer"


class CallbackResult(BaseModel):
    """The authorization code delivered by the loopback redirect."""

    code: str


# --- Persisted and reported state ---


class StoredTokens(BaseModel):
    """Contents of the token file.

    ``expires_at`` is absolute epoch seconds. ``app_id`` is read out of the
    access token without verifying its signature, so it is a routing hint
    only, never a trusted claim.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: int
    client_id: str
    app_id: Optional[str] = None


class AuthStatus(BaseModel):
    """Snapshot reported by ``auth status``.

    ``usable`` means the access token is outside the refresh buffer and can
    be sent as-is; an unusable token with ``refreshable`` set will be
    refreshed silently on the next API call.
    """

    logged_in: bool = False
    app_id: Optional[str] = None
    expires_at: Optional[int] = None
    expires_in: Optional[int] = None
    expired: bool = False
    refreshable: bool = False
    usable: bool = False

    @property
    def needs_login(self) -> bool:
        return not self.logged_in or (not self.usable and not self.refreshable)
