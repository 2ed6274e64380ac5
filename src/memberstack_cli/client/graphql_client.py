"""Synchronous GraphQL client with bearer-token injection.

This module provides :class:`GraphQLClient`, the blocking transport used by
API commands. It wraps :class:`httpx.Client` and layers on:

- **Auth injection** -- ``Authorization: Bearer``, ``ms-app-id`` and
  ``ms-mode`` headers from the session, resolved once per request so that
  a near-expiry token is refreshed first.
- **Error mapping** -- HTTP and GraphQL errors become
  :class:`~memberstack_cli.exceptions.GraphQLError`; network failures become
  :class:`~memberstack_cli.exceptions.ConnectionError_`.

Requests are not retried: mutations are not idempotent.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import httpx

from memberstack_cli.exceptions import (
    ConnectionError_,
    GraphQLError,
    NotAuthenticatedError,
)
from memberstack_cli.models import Settings
from memberstack_cli.output import debug


class TokenSource(Protocol):
    """What the transport needs from the auth core."""

    def get_valid_access_token(self) -> Optional[str]: ...

    def get_app_id(self) -> Optional[str]: ...


class GraphQLClient:
    """GraphQL client for the Memberstack admin API.

    Must be used as a context manager so that the underlying transport is
    opened and closed.

    Args:
        settings: Supplies the GraphQL URL, mode and timeout.
        tokens: Usually an :class:`~memberstack_cli.auth.AuthSession`.
        transport: Optional httpx transport (tests pass
            :class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        settings: Settings,
        tokens: TokenSource,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._tokens = tokens
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> GraphQLClient:
        self._client = httpx.Client(
            timeout=self._settings.request_timeout,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def request(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Send a GraphQL query or mutation and return its ``data``.

        Raises:
            NotAuthenticatedError: No valid token or app ID is stored.
            GraphQLError: Non-2xx status, ``errors`` in the body, or no ``data``.
            ConnectionError_: The request could not be sent.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        headers = self._auth_headers()
        url = self._settings.graphql_url
        debug(f"POST {url} (mode={self._settings.mode})")

        try:
            response = self._client.post(
                url,
                params={"mode": self._settings.mode},
                headers=headers,
                json={"query": query, "variables": variables or {}},
            )
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"GraphQL request failed: {exc}") from exc

        return self._parse(response)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _auth_headers(self) -> dict[str, str]:
        access_token = self._tokens.get_valid_access_token()
        if not access_token:
            raise NotAuthenticatedError(
                'Not authenticated. Run "memberstack auth login" first to '
                "connect your Memberstack account."
            )
        app_id = self._tokens.get_app_id()
        if not app_id:
            raise NotAuthenticatedError(
                'No app ID found in stored credentials. Try logging in again '
                'with "memberstack auth login".'
            )
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {access_token}",
            "ms-app-id": app_id,
            "ms-mode": self._settings.mode,
        }

    def _parse(self, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        errors = body.get("errors")
        if errors and not isinstance(errors, list):
            errors = [errors]
        messages = "; ".join(
            str(e.get("message", e)) if isinstance(e, dict) else str(e)
            for e in errors or []
        )

        if response.is_error:
            if messages:
                raise GraphQLError(f"GraphQL error ({response.status_code}): {messages}")
            raise GraphQLError(
                f"GraphQL request failed with status {response.status_code}"
            )
        if messages:
            raise GraphQLError(f"GraphQL error: {messages}")

        data = body.get("data")
        if not data:
            raise GraphQLError("GraphQL response contained no data")
        return data
