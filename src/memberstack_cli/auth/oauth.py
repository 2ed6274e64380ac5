"""Authorization-server calls for the OAuth2 Authorization Code + PKCE flow.

This module provides the stateless pieces of the login protocol:

1. :func:`register_client` -- dynamic client registration (:rfc:`7591`) of a
   public client bound to this login's loopback redirect URI.
2. :func:`build_authorization_url` -- the browser-facing authorization request.
3. :func:`exchange_code_for_tokens` / :func:`refresh_access_token` -- the two
   token endpoint grants.
4. :func:`revoke_token` -- best-effort revocation (:rfc:`7009`).

Every call is a single attempt. Errors surface as the
:class:`~memberstack_cli.exceptions.OAuthHTTPError` subclass for the
operation, carrying the HTTP status and body when the server answered.

See Also:
    :class:`memberstack_cli.auth.session.AuthSession` for the orchestration.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from memberstack_cli.exceptions import (
    OAuthHTTPError,
    RegistrationError,
    TokenExchangeError,
    TokenRefreshError,
)
from memberstack_cli.models import RegisteredClient, Settings, TokenSet
from memberstack_cli.output import debug


def build_authorization_url(
    settings: Settings,
    client_id: str,
    redirect_uri: str,
    code_challenge: str,
    state: str,
) -> str:
    """Compose the authorization endpoint URL. Pure; no I/O.

    Args:
        settings: Endpoint, scope and resource configuration.
        client_id: The client registered for *redirect_uri*.
        redirect_uri: The loopback URI the listener will serve.
        code_challenge: S256 PKCE challenge.
        state: Anti-CSRF token echoed back on the redirect.

    Returns:
        The full URL to open in the user's browser.
    """
    params: dict[str, str] = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "state": state,
        "scope": settings.scope,
        "resource": settings.resource_indicator,
    }
    return f"{settings.authorize_url}?{urlencode(params)}"


def register_client(settings: Settings, redirect_uri: str) -> str:
    """Register an ephemeral public client for this login session.

    Args:
        settings: Registration endpoint, client name and scope.
        redirect_uri: The exact redirect URI the loopback listener serves.

    Returns:
        The issued ``client_id``.

    Raises:
        RegistrationError: On a non-2xx response, a transport failure, or a
            response without ``client_id``.
    """
    payload: dict[str, Any] = {
        "client_name": settings.client_name,
        "redirect_uris": [redirect_uri],
        "grant_types": ["authorization_code", "refresh_token"],
        "response_types": ["code"],
        "token_endpoint_auth_method": "none",
        "scope": settings.scope,
    }

    debug(f"POST {settings.register_url}")
    try:
        response = httpx.post(
            settings.register_url,
            json=payload,
            headers={"Accept": "application/json"},
            timeout=settings.request_timeout,
        )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as exc:
        raise RegistrationError(
            f"Client registration failed: {exc.response.status_code} {exc.response.text}",
            status_code=exc.response.status_code,
            body=exc.response.text,
        ) from exc
    except httpx.HTTPError as exc:
        raise RegistrationError(f"Client registration failed: {exc}") from exc
    except ValueError as exc:
        raise RegistrationError(
            f"Client registration returned invalid JSON: {exc}"
        ) from exc

    try:
        client = RegisteredClient.model_validate(data)
    except ValidationError as exc:
        raise RegistrationError(
            "Client registration response missing 'client_id'"
        ) from exc
    return client.client_id


def exchange_code_for_tokens(
    settings: Settings,
    client_id: str,
    code: str,
    redirect_uri: str,
    code_verifier: str,
) -> TokenSet:
    """Exchange an authorization code for tokens.

    Args:
        settings: Token endpoint and resource indicator.
        client_id: The client registered for this login.
        code: Authorization code from the loopback callback.
        redirect_uri: The redirect URI used in the authorization request.
        code_verifier: The PKCE verifier matching the sent challenge.

    Returns:
        The token endpoint's :class:`~memberstack_cli.models.TokenSet`.

    Raises:
        TokenExchangeError: On HTTP or transport errors, or a malformed
            token response.
    """
    data = {
        "grant_type": "authorization_code",
        "client_id": client_id,
        "code": code,
        "redirect_uri": redirect_uri,
        "code_verifier": code_verifier,
        "resource": settings.resource_indicator,
    }
    return _token_request(settings, data, TokenExchangeError, "Token exchange")


def refresh_access_token(
    settings: Settings,
    client_id: str,
    refresh_token: str,
) -> TokenSet:
    """Run the refresh token grant.

    The returned set may omit ``refresh_token``; the server decides whether
    to rotate it.

    Raises:
        TokenRefreshError: On HTTP or transport errors, or a malformed
            token response.
    """
    data = {
        "grant_type": "refresh_token",
        "client_id": client_id,
        "refresh_token": refresh_token,
        "resource": settings.resource_indicator,
    }
    return _token_request(settings, data, TokenRefreshError, "Token refresh")


def revoke_token(settings: Settings, client_id: str, token: str) -> None:
    """Ask the server to revoke *token*. Never raises.

    The response is not inspected: logout must succeed locally whatever
    the server's state.
    """
    debug(f"POST {settings.revoke_url}")
    try:
        response = httpx.post(
            settings.revoke_url,
            data={"client_id": client_id, "token": token},
            timeout=settings.request_timeout,
        )
        debug(f"Revocation answered {response.status_code}")
    except httpx.HTTPError as exc:
        debug(f"Revocation failed, ignoring: {exc}")


def _token_request(
    settings: Settings,
    data: dict[str, str],
    error_cls: type[OAuthHTTPError],
    action: str,
) -> TokenSet:
    """POST a form-encoded grant to the token endpoint and parse the result."""
    debug(f"POST {settings.token_url} (grant_type={data['grant_type']})")
    try:
        response = httpx.post(
            settings.token_url,
            data=data,
            headers={"Accept": "application/json"},
            timeout=settings.request_timeout,
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as exc:
        raise error_cls(
            f"{action} failed: {exc.response.status_code} {exc.response.text}",
            status_code=exc.response.status_code,
            body=exc.response.text,
        ) from exc
    except httpx.HTTPError as exc:
        raise error_cls(f"{action} failed: {exc}") from exc
    except ValueError as exc:
        raise error_cls(f"{action} returned invalid JSON: {exc}") from exc

    try:
        return TokenSet.model_validate(payload)
    except ValidationError as exc:
        raise error_cls(f"{action} response is missing required fields: {exc}") from exc
