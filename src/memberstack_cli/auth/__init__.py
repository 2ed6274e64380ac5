"""OAuth2 Authorization Code + PKCE login and token lifecycle.

The main entry points are:

- :class:`AuthSession` -- ``login`` / ``logout`` / ``status`` and the
  ``get_valid_access_token`` / ``get_app_id`` pair consumed by the API
  transport.
- :class:`TokenStore` -- the persisted token file with expiry detection and
  silent refresh.
- :class:`CallbackServer` -- the single-use loopback redirect listener.

Typical usage::

    from memberstack_cli.auth import AuthSession

    session = AuthSession(settings)
    session.login()
    token = session.get_valid_access_token()
"""

from memberstack_cli.auth.callback_server import CallbackServer, find_available_port
from memberstack_cli.auth.session import AuthSession, SessionState
from memberstack_cli.auth.token_store import TokenStore

__all__ = [
    "AuthSession",
    "CallbackServer",
    "SessionState",
    "TokenStore",
    "find_available_port",
]
