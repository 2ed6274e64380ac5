"""Exception hierarchy for memberstack-cli.

All exceptions inherit from :class:`MemberstackError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`memberstack_cli.exit_codes`. :func:`memberstack_cli.app.main` catches
``MemberstackError`` and exits with that code, while unexpected exceptions
produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    MemberstackError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- AuthError                (exit 3)
    |   +-- NotAuthenticatedError
    |   +-- RegistrationError
    |   +-- CallbackError
    |   |   +-- ProviderDeniedError
    |   |   +-- MissingCallbackParameterError
    |   |   +-- StateMismatchError
    |   |   +-- CallbackTimeoutError
    |   +-- TokenExchangeError
    |   +-- TokenRefreshError
    +-- StorageError             (exit 1)
    +-- ConfigError              (exit 1)
    +-- ServerError              (exit 5)
    |   +-- GraphQLError
    +-- ConnectionError_         (exit 6)
"""

from __future__ import annotations

from memberstack_cli.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SERVER_ERROR,
)


class MemberstackError(Exception):
    """Base exception for all memberstack-cli errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(MemberstackError):
    """Raised for invalid CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(MemberstackError):
    """Raised when the OAuth flow fails or no usable login exists."""

    exit_code = EXIT_AUTH_FAILURE


class NotAuthenticatedError(AuthError):
    """Raised by the transport when no valid token or app ID is stored."""


class OAuthHTTPError(AuthError):
    """An authorization-server call that failed.

    Carries the HTTP status and response body when the server answered;
    both are ``None`` for transport-level failures (DNS, refused
    connection, timeout).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RegistrationError(OAuthHTTPError):
    """Dynamic client registration was rejected or could not be sent."""


class TokenExchangeError(OAuthHTTPError):
    """The authorization code could not be exchanged for tokens."""


class TokenRefreshError(OAuthHTTPError):
    """The refresh token grant failed.

    Never surfaced to users directly: the token store turns it into
    "no valid token" so the fix is a fresh ``auth login``.
    """


class CallbackError(AuthError):
    """The loopback redirect did not deliver a usable authorization code."""


class ProviderDeniedError(CallbackError):
    """The authorization server redirected back with an ``error`` parameter."""

    def __init__(self, error: str, description: str | None = None):
        self.error = error
        self.description = description
        super().__init__(f"Authorization failed: {description or error}")


class MissingCallbackParameterError(CallbackError):
    """The redirect lacked ``code`` or ``state``."""


class StateMismatchError(CallbackError):
    """The redirect's ``state`` did not match the one sent (possible CSRF)."""


class CallbackTimeoutError(CallbackError):
    """No redirect arrived within the allotted time."""


class StorageError(MemberstackError):
    """The token file could not be written or removed."""


class ConfigError(MemberstackError):
    """Raised for invalid configuration files or environment overrides."""


class ServerError(MemberstackError):
    """Raised when the API answers with an HTTP error status."""

    exit_code = EXIT_SERVER_ERROR


class GraphQLError(ServerError):
    """Raised when a GraphQL response carries ``errors`` or no ``data``."""


class ConnectionError_(MemberstackError):
    """Raised on network-level failures talking to the API.

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
