"""Session facade -- login, logout, status and token access for commands.

:class:`AuthSession` strings the protocol pieces together::

    LOGGED_OUT -> AUTHORIZING -> AWAITING_CALLBACK -> EXCHANGING -> LOGGED_IN

``login`` discovers a loopback port, registers a client for that redirect
URI, starts the callback listener, opens the browser, exchanges the returned
code and persists the tokens. A failure at any step puts the session back in
``LOGGED_OUT`` and re-raises; the listener is always closed.

See Also:
    :mod:`memberstack_cli.auth.oauth` for the individual protocol calls.
    :class:`memberstack_cli.auth.token_store.TokenStore` for persistence.
"""

from __future__ import annotations

import enum
import threading
import webbrowser
from typing import Any, Callable, Optional

from memberstack_cli.auth.callback_server import (
    CallbackServer,
    build_redirect_uri,
    find_available_port,
)
from memberstack_cli.auth.oauth import (
    build_authorization_url,
    exchange_code_for_tokens,
    register_client,
    revoke_token,
)
from memberstack_cli.auth.pkce import generate_pkce_material
from memberstack_cli.auth.token_store import TokenStore
from memberstack_cli.models import AuthStatus, Settings, StoredTokens
from memberstack_cli.output import debug, info, warning

_UNSET: Any = object()


class SessionState(str, enum.Enum):
    """Where a session is in the login flow."""

    LOGGED_OUT = "logged_out"
    AUTHORIZING = "authorizing"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    LOGGED_IN = "logged_in"


class AuthSession:
    """Orchestrates the OAuth login and owns the stored tokens.

    Args:
        settings: Endpoint, callback and storage configuration.
        store: Token store; defaults to one built from *settings*.
        open_browser: Called with the authorization URL. Returning a falsy
            value means no browser could be launched; the URL is printed
            either way.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[TokenStore] = None,
        open_browser: Callable[[str], Any] = webbrowser.open,
    ) -> None:
        self._settings = settings
        self._store = store or TokenStore(settings)
        self._open_browser = open_browser
        self._state = (
            SessionState.LOGGED_IN if self._store.load() else SessionState.LOGGED_OUT
        )

    @property
    def state(self) -> SessionState:
        return self._state

    # ------------------------------------------------------------------ #
    # Login / logout
    # ------------------------------------------------------------------ #

    def login(self, timeout: Optional[float] = _UNSET) -> StoredTokens:
        """Run the interactive browser login and persist the tokens.

        Args:
            timeout: Seconds to wait for the browser redirect. Defaults to
                ``settings.callback_timeout``; ``None`` waits indefinitely.

        Returns:
            The stored token record.

        Raises:
            RegistrationError: Client registration failed.
            CallbackError: The redirect was denied, malformed, forged, or
                did not arrive in time (see the subclasses).
            TokenExchangeError: The code could not be exchanged.
            StorageError: The tokens could not be written.
        """
        if timeout is _UNSET:
            timeout = self._settings.callback_timeout

        settings = self._settings
        try:
            self._state = SessionState.AUTHORIZING
            port = find_available_port(settings.callback_host)
            redirect_uri = build_redirect_uri(
                settings.callback_host, port, settings.callback_path
            )

            client_id = register_client(settings, redirect_uri)
            debug(f"Registered client {client_id} for {redirect_uri}")

            material = generate_pkce_material()
            auth_url = build_authorization_url(
                settings,
                client_id=client_id,
                redirect_uri=redirect_uri,
                code_challenge=material.code_challenge,
                state=material.state,
            )

            self._state = SessionState.AWAITING_CALLBACK
            with CallbackServer(
                port,
                expected_state=material.state,
                callback_path=settings.callback_path,
                host=settings.callback_host,
            ) as server:
                server.start()
                info("Opening browser to log in...")
                self._launch_browser(auth_url)
                info("Waiting for authentication...")
                callback = server.wait(timeout=timeout)

            self._state = SessionState.EXCHANGING
            token_set = exchange_code_for_tokens(
                settings,
                client_id=client_id,
                code=callback.code,
                redirect_uri=redirect_uri,
                code_verifier=material.code_verifier,
            )
            record = self._store.save(token_set, client_id)
        except BaseException:
            self._state = SessionState.LOGGED_OUT
            raise

        self._state = SessionState.LOGGED_IN
        return record

    def logout(self) -> bool:
        """Revoke (best effort) and delete the stored tokens.

        Returns:
            ``True`` if tokens were stored before logging out.

        Raises:
            StorageError: If the token file exists but cannot be removed.
        """
        tokens = self._store.load()
        if tokens is not None and tokens.refresh_token:
            revoke_token(self._settings, tokens.client_id, tokens.refresh_token)
        removed = self._store.clear()
        self._state = SessionState.LOGGED_OUT
        return tokens is not None or removed

    # ------------------------------------------------------------------ #
    # Read-only access
    # ------------------------------------------------------------------ #

    def status(self) -> AuthStatus:
        """Report the stored login without touching the network or disk state.

        Never raises; an unreadable token file reports as logged out.
        """
        tokens = self._store.load()
        if tokens is None:
            return AuthStatus()

        remaining = tokens.expires_at - self._store.now()
        return AuthStatus(
            logged_in=True,
            app_id=tokens.app_id,
            expires_at=tokens.expires_at,
            expires_in=remaining,
            expired=remaining <= 0,
            refreshable=bool(tokens.refresh_token),
            usable=self._store.is_usable(tokens),
        )

    def get_valid_access_token(self) -> Optional[str]:
        """See :meth:`TokenStore.get_valid_access_token`."""
        return self._store.get_valid_access_token()

    def get_app_id(self) -> Optional[str]:
        """See :meth:`TokenStore.get_app_id`."""
        return self._store.get_app_id()

    def _launch_browser(self, url: str) -> None:
        """Open *url* on a daemon thread so a slow launcher cannot block.

        When no browser comes up the URL goes out as a warning, which
        ``--quiet`` does not suppress; it is the only way to finish the login.
        """

        def _open() -> None:
            try:
                opened = self._open_browser(url)
            except Exception as exc:  # webbrowser backends raise assorted errors
                debug(f"Could not open browser: {exc}")
                opened = False
            if opened:
                info(f"If the browser did not open, visit: {url}")
            else:
                warning(f"Could not open a browser. Open this URL to log in: {url}")

        threading.Thread(target=_open, name="open-browser", daemon=True).start()
