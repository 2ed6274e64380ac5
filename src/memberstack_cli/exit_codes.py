"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~memberstack_cli.exceptions.MemberstackError` subclass.
Shell wrappers can inspect the exit code to tell an expired login apart from
a server outage without parsing stderr.

Example::

    $ memberstack whoami
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- not logged in, or the login was rejected
"""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed or no valid login is stored."""

EXIT_SERVER_ERROR = 5
"""The remote API answered with an error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C."""
