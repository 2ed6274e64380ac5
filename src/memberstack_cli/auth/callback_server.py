"""Loopback HTTP listener that receives the OAuth authorization redirect.

The redirect URI has to be registered before the listener starts, so the
port is discovered in two phases: :func:`find_available_port` binds a probe
socket to port 0 and closes it, then :class:`CallbackServer` binds the real
listener to the same port. Another process could claim the port in between;
for a single-user local CLI that window is accepted, and the rebind fails
loudly with :class:`~memberstack_cli.exceptions.CallbackError` if it happens.

The listener serves requests on a daemon thread until exactly one terminal
outcome is reached on the callback path:

* ``?error=...`` -> 400, :class:`~memberstack_cli.exceptions.ProviderDeniedError`
* missing ``code`` or ``state`` -> 400,
  :class:`~memberstack_cli.exceptions.MissingCallbackParameterError`
* ``state`` mismatch -> 400, :class:`~memberstack_cli.exceptions.StateMismatchError`
* otherwise -> 200 and a :class:`~memberstack_cli.models.CallbackResult`

Requests for any other path (favicons, probes) get a 404 and the listener
keeps waiting. The socket is closed after the terminal outcome, on timeout,
and when the context manager exits.

Example::

    port = find_available_port()
    with CallbackServer(port, expected_state=state) as server:
        server.start()
        webbrowser.open(auth_url)
        result = server.wait(timeout=300)
"""

from __future__ import annotations

import html
import socket
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from memberstack_cli.exceptions import (
    CallbackError,
    CallbackTimeoutError,
    MissingCallbackParameterError,
    ProviderDeniedError,
    StateMismatchError,
)
from memberstack_cli.models import CallbackResult
from memberstack_cli.output import debug

_POLL_INTERVAL = 0.25

_PAGE = """<!DOCTYPE html>
<html>
<head><title>Memberstack CLI</title></head>
<body style="font-family: system-ui, sans-serif; display: flex; justify-content: center; align-items: center; height: 100vh; margin: 0;">
  <div style="text-align: center;">
    <h1>{heading}</h1>
    <p>{message}</p>
  </div>
</body>
</html>"""

SUCCESS_HTML = _PAGE.format(
    heading="Authenticated!",
    message="You can close this tab and return to the terminal.",
)


def error_html(message: str) -> str:
    """Render the failure page with *message* HTML-escaped."""
    return _PAGE.format(heading="Authentication Failed", message=html.escape(message))


def build_redirect_uri(host: str, port: int, callback_path: str) -> str:
    """The loopback redirect URI to register and serve."""
    return f"http://{host}:{port}{callback_path}"


def find_available_port(host: str = "127.0.0.1") -> int:
    """Return a TCP port on *host* that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


class _LoopbackHTTPServer(HTTPServer):
    """HTTPServer carrying the expected state and the single-outcome future."""

    def __init__(
        self,
        address: tuple[str, int],
        expected_state: str,
        callback_path: str,
    ) -> None:
        super().__init__(address, _CallbackHandler)
        self.expected_state = expected_state
        self.callback_path = callback_path
        self.outcome: Future[CallbackResult] = Future()
        self._settle_lock = threading.Lock()

    def settle(
        self,
        result: Optional[CallbackResult] = None,
        error: Optional[BaseException] = None,
    ) -> bool:
        """Record the terminal outcome. Returns False if one already exists."""
        with self._settle_lock:
            if self.outcome.done():
                return False
            if error is not None:
                self.outcome.set_exception(error)
            else:
                self.outcome.set_result(result)
            return True


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _LoopbackHTTPServer

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path != self.server.callback_path:
            self._respond(404, "Not found", content_type="text/plain; charset=utf-8")
            return

        params = parse_qs(parsed.query)
        code = _first(params, "code")
        state = _first(params, "state")
        provider_error = _first(params, "error")

        if provider_error:
            description = _first(params, "error_description")
            exc: CallbackError = ProviderDeniedError(provider_error, description)
            self._reject(exc, description or provider_error)
            return

        if not (code and state):
            self._reject(
                MissingCallbackParameterError("Missing code or state in callback"),
                "Missing code or state parameter",
            )
            return

        if state != self.server.expected_state:
            self._reject(
                StateMismatchError("State mismatch in OAuth callback"),
                "State mismatch. The request may have been forged.",
            )
            return

        if self.server.settle(result=CallbackResult(code=code)):
            self._respond(200, SUCCESS_HTML)
        else:
            self._respond(400, error_html("This login attempt has already completed."))

    def _reject(self, exc: CallbackError, page_message: str) -> None:
        self.server.settle(error=exc)
        self._respond(400, error_html(page_message))

    def _respond(
        self,
        status: int,
        body: str,
        content_type: str = "text/html; charset=utf-8",
    ) -> None:
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: Any) -> None:
        debug(f"callback listener: {format % args}")


def _first(params: dict[str, list[str]], name: str) -> Optional[str]:
    values = params.get(name)
    return values[0] if values else None


class CallbackServer:
    """Single-use loopback listener for the authorization redirect.

    Args:
        port: Port discovered by :func:`find_available_port`.
        expected_state: The ``state`` sent in the authorization request.
        callback_path: Path component of the registered redirect URI.
        host: Loopback interface to bind.
    """

    def __init__(
        self,
        port: int,
        expected_state: str,
        callback_path: str = "/callback",
        host: str = "127.0.0.1",
    ) -> None:
        self._host = host
        self._port = port
        self._expected_state = expected_state
        self._callback_path = callback_path
        self._server: Optional[_LoopbackHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def port(self) -> int:
        return self._port

    @property
    def redirect_uri(self) -> str:
        return build_redirect_uri(self._host, self._port, self._callback_path)

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> CallbackServer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Bind the listener and start serving on a daemon thread.

        Raises:
            CallbackError: If the port cannot be bound (taken since the
                probe, or not permitted).
        """
        if self._server is not None:
            raise CallbackError("Callback listener already started")
        try:
            self._server = _LoopbackHTTPServer(
                (self._host, self._port), self._expected_state, self._callback_path
            )
        except OSError as exc:
            raise CallbackError(
                f"Could not listen on {self._host}:{self._port}: {exc}"
            ) from exc
        self._server.timeout = _POLL_INTERVAL

        self._thread = threading.Thread(
            target=self._serve, name="oauth-callback", daemon=True
        )
        self._thread.start()
        debug(f"Listening for OAuth callback on {self.redirect_uri}")

    def wait(self, timeout: Optional[float] = None) -> CallbackResult:
        """Block until the redirect arrives, then close the listener.

        Args:
            timeout: Seconds to wait; ``None`` waits indefinitely.

        Returns:
            The authorization code.

        Raises:
            CallbackError: The specific subclass for the rejected redirect.
            CallbackTimeoutError: If nothing arrived within *timeout*.
        """
        if self._server is None:
            raise CallbackError("Callback listener is not running")
        try:
            return self._server.outcome.result(timeout=timeout)
        except FutureTimeoutError:
            raise CallbackTimeoutError(
                f"Timed out after {timeout:g}s waiting for the browser to "
                "complete the login"
            ) from None
        finally:
            self.close()

    def close(self) -> None:
        """Stop serving and release the socket. Safe to call repeatedly."""
        self._stop.set()
        if self._thread is not None:
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=5)
            self._thread = None
        if self._server is not None:
            self._server.server_close()
            self._server = None

    def _serve(self) -> None:
        server = self._server
        assert server is not None
        while not self._stop.is_set() and not server.outcome.done():
            server.handle_request()
        server.server_close()
