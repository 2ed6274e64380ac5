"""Persistent OAuth token storage and lifecycle.

Tokens live in a single JSON file, ``~/.memberstack/auth.json`` by default,
written atomically with ``0o600`` permissions inside a ``0o700`` directory.
The file holds a serialised :class:`~memberstack_cli.models.StoredTokens`.

:meth:`TokenStore.get_valid_access_token` is what the API transport calls
before every request: it returns the stored token while it is more than
:data:`EXPIRY_BUFFER_SECONDS` from expiry, silently refreshes it otherwise,
and reports "not authenticated" (``None``) rather than raising when neither
works.

See Also:
    :class:`~memberstack_cli.auth.session.AuthSession` -- writes tokens on login.
    :class:`~memberstack_cli.client.GraphQLClient` -- consumes them.
"""

from __future__ import annotations

import base64
import binascii
import json
import time
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from memberstack_cli.auth.oauth import refresh_access_token
from memberstack_cli.config import atomic_write_private
from memberstack_cli.exceptions import StorageError, TokenRefreshError
from memberstack_cli.models import Settings, StoredTokens, TokenSet
from memberstack_cli.output import debug

EXPIRY_BUFFER_SECONDS = 60
"""A token this close to expiry is refreshed instead of used."""

APP_ID_CLAIM = "appId"


def parse_app_id(access_token: str) -> Optional[str]:
    """Read the app ID out of a JWT-shaped access token.

    The payload segment is decoded without any signature check, so the
    result is a hint for request routing, not an authenticated claim.

    Returns:
        The ``appId`` string, or ``None`` if the token is not a decodable
        JWT or carries no such claim.
    """
    parts = access_token.split(".")
    if len(parts) < 2:
        return None
    segment = parts[1]
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    app_id = payload.get(APP_ID_CLAIM)
    return app_id if isinstance(app_id, str) else None


class TokenStore:
    """Read/write the token file and keep the access token fresh.

    Args:
        settings: Supplies the token path and the endpoints used to refresh.
        clock: Returns the current epoch time in seconds. Injected so that
            expiry logic can be tested without sleeping.

    Example::

        store = TokenStore(settings)
        store.save(token_set, client_id="c1")
        token = store.get_valid_access_token()
    """

    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._clock = clock

    @property
    def path(self) -> Path:
        """The filesystem path to the token file."""
        return self._settings.token_path

    def now(self) -> int:
        """Current epoch seconds, floored."""
        return int(self._clock())

    def save(self, token_set: TokenSet, client_id: str) -> StoredTokens:
        """Persist *token_set*, replacing any stored tokens.

        Args:
            token_set: Token endpoint response from an exchange or refresh.
            client_id: The client the tokens were issued to.

        Returns:
            The record that was written.

        Raises:
            StorageError: If the directory or file cannot be written.
        """
        record = StoredTokens(
            access_token=token_set.access_token,
            refresh_token=token_set.refresh_token,
            expires_at=self.now() + token_set.expires_in,
            client_id=client_id,
            app_id=parse_app_id(token_set.access_token),
        )
        text = json.dumps(record.model_dump(mode="json", exclude_none=True), indent=2) + "\n"
        try:
            atomic_write_private(self.path, text)
        except OSError as exc:
            raise StorageError(f"Could not save tokens to {self.path}: {exc}") from exc
        debug(f"Saved tokens to {self.path} (expires_at={record.expires_at})")
        return record

    def load(self) -> Optional[StoredTokens]:
        """Load the stored tokens.

        Returns:
            The :class:`~memberstack_cli.models.StoredTokens`, or ``None``
            if the file is missing, unreadable, or not a valid record.
        """
        try:
            return StoredTokens.model_validate(
                json.loads(self.path.read_text(encoding="utf-8"))
            )
        except FileNotFoundError:
            return None
        except OSError as exc:
            debug(f"Could not read {self.path}: {exc}")
            return None
        except (ValueError, ValidationError) as exc:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            debug(f"Ignoring unparseable token file {self.path}: {exc}")
            return None

    def clear(self) -> bool:
        """Delete the token file.

        Returns:
            ``True`` if a file was removed, ``False`` if there was none.

        Raises:
            StorageError: If the file exists but cannot be removed.
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Could not remove {self.path}: {exc}") from exc
        return True

    def is_usable(self, tokens: StoredTokens) -> bool:
        """Whether *tokens* can be sent without refreshing first."""
        return tokens.expires_at > self.now() + EXPIRY_BUFFER_SECONDS

    def get_valid_access_token(self) -> Optional[str]:
        """Return an access token that is safe to send, refreshing if needed.

        Returns:
            The stored token while usable; a freshly refreshed (and
            persisted) token when near expiry and a refresh token exists;
            otherwise ``None``, meaning the user has to log in again.
        """
        tokens = self.load()
        if tokens is None:
            return None

        if self.is_usable(tokens):
            return tokens.access_token

        if not tokens.refresh_token:
            debug("Access token expired and no refresh token is stored")
            return None

        try:
            refreshed = refresh_access_token(
                self._settings, tokens.client_id, tokens.refresh_token
            )
            self.save(refreshed, tokens.client_id)
        except (TokenRefreshError, StorageError) as exc:
            debug(f"Token refresh failed: {exc}")
            return None
        return refreshed.access_token

    def get_app_id(self) -> Optional[str]:
        """Return the persisted app ID, or ``None``."""
        tokens = self.load()
        return tokens.app_id if tokens else None
