"""memberstack-cli -- sign in to Memberstack from the terminal.

This package implements a browser-based OAuth 2.0 login (Authorization Code
with PKCE and dynamic client registration) for a command-line tool, keeps
the resulting tokens fresh on disk, and uses them to call the Memberstack
admin GraphQL API.

Typical workflow::

    memberstack auth login     # opens the browser
    memberstack whoami         # authenticated GraphQL call
    memberstack auth logout

Modules:
    app: Typer application and CLI entry point.
    auth: PKCE, OAuth calls, loopback listener, token store and session.
    client: GraphQL transport with bearer-token injection.
    models: Pydantic models shared across the package.
    config: Settings resolution and private-file writes.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
