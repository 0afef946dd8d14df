"""Browser-driven OAuth2 authorization-code session.

:class:`AuthorizationSession` owns one sign-in attempt end to end:

1. :meth:`~AuthorizationSession.start` issues an unguessable ``state``,
   binds a loopback :class:`~http.server.HTTPServer` on the redirect URI's
   host and port, and opens the authorization URL in the browser.
2. ``GET /`` (:meth:`~AuthorizationSession.handle_root`) re-issues a fresh
   ``state`` and redirects to the provider. Only the most recent state is
   accepted.
3. ``GET /callback`` (:meth:`~AuthorizationSession.handle_callback`)
   checks ``state``, exchanges ``code`` via
   :class:`~gitpulse.auth.exchange.TokenExchangeClient`, stores the token
   via :class:`~gitpulse.auth.token_store.TokenStore`, answers with a
   terminal HTML page, and schedules listener shutdown on a cancelable
   timer so the page is flushed before the socket closes.

State machine::

    IDLE -> AWAITING_CALLBACK -> EXCHANGING -> COMPLETED | FAILED -> CLOSED

A callback with a wrong or missing ``state``, or without ``code``, is
answered with a failure page and changes nothing. A failed exchange leaves
the listener running; visiting ``/`` again starts a new attempt. The
listener is single-threaded, so one request is handled at a time.

Example::

    session = AuthorizationSession(config)
    outcome = session.login(timeout=300)
    if outcome is SessionState.COMPLETED:
        ...
"""

from __future__ import annotations

import hmac
import html
import logging
import secrets
import socket
import threading
import webbrowser
from dataclasses import dataclass, field
from enum import Enum
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlencode, urlparse

from gitpulse.auth.cipher import CredentialCipher
from gitpulse.auth.exchange import TokenExchangeClient
from gitpulse.auth.token_store import TokenStore
from gitpulse.exceptions import AuthError, ConfigError
from gitpulse.logs import register_secret
from gitpulse.models import AppConfig

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = (
    "Authorization successful! You can close this window and return to the terminal."
)


class SessionState(str, Enum):
    """Lifecycle states of an :class:`AuthorizationSession`."""

    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    COMPLETED = "completed"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(frozen=True)
class CallbackResponse:
    """What the listener sends back for one request."""

    status: int
    body: str = ""
    headers: dict[str, str] = field(default_factory=dict)


def new_state() -> str:
    """Return a fresh, unguessable state value."""
    return secrets.token_urlsafe(32)


def build_authorization_url(config: AppConfig, state: str) -> str:
    """Build the provider authorization URL carrying *state*."""
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scope": " ".join(config.scopes),
        "state": state,
    }
    return f"{config.authorize_url}?{urlencode(params)}"


def render_page(title: str, message: str) -> str:
    """Render a minimal terminal HTML page. Both arguments are escaped."""
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title></head>"
        f"<body><h2>{html.escape(title)}</h2><p>{html.escape(message)}</p></body></html>"
    )


def _states_match(received: Optional[str], expected: Optional[str]) -> bool:
    if received is None or expected is None:
        return False
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


class _CallbackServer(HTTPServer):
    """HTTPServer carrying a reference to the session its handlers serve."""

    def __init__(self, address: tuple[str, int], session: AuthorizationSession) -> None:
        if ":" in address[0]:
            self.address_family = socket.AF_INET6
        self.session = session
        super().__init__(address, _CallbackHandler)


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        session = self.server.session
        # Query strings carry the code and state; only the path is logged.
        logger.debug("GET %s", parsed.path)
        try:
            if parsed.path == "/":
                response = session.handle_root()
            elif parsed.path == session.callback_path:
                params = parse_qs(parsed.query)
                response = session.handle_callback(
                    code=_first(params, "code"),
                    state=_first(params, "state"),
                    error=_first(params, "error"),
                    error_description=_first(params, "error_description"),
                )
            else:
                response = CallbackResponse(404, render_page("Not found", parsed.path))
        except Exception as exc:
            logger.error("Callback handler failed: %s", type(exc).__name__)
            response = CallbackResponse(
                500, render_page("Authorization failed", "Internal error")
            )
        self._send(response)

    def _send(self, response: CallbackResponse) -> None:
        body = response.body.encode("utf-8")
        self.send_response(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        # The default access log would print code and state
        pass


def _first(params: dict[str, list[str]], name: str) -> Optional[str]:
    values = params.get(name)
    if not values:
        return None
    return values[0] or None


class AuthorizationSession:
    """One OAuth2 authorization-code sign-in, from browser to stored token.

    All mutable session state -- the last issued ``state`` value, the
    listener, and the shutdown timer -- lives on the instance and is only
    touched by its handlers and lifecycle methods.

    Args:
        config: Application configuration (client, endpoints, redirect URI).
        exchange_client: Exchanges codes for tokens. Defaults to a
            :class:`TokenExchangeClient` for *config*.
        token_store: Receives the token on success. Defaults to a
            :class:`TokenStore` at ``config.token_file``.
        open_browser: Called with the authorization URL on :meth:`start`.
            ``None`` skips opening a browser.
        state_factory: Produces state values. Defaults to :func:`new_state`.
    """

    def __init__(
        self,
        config: AppConfig,
        exchange_client: Optional[TokenExchangeClient] = None,
        token_store: Optional[TokenStore] = None,
        open_browser: Optional[Callable[[str], Any]] = webbrowser.open,
        state_factory: Callable[[], str] = new_state,
    ) -> None:
        self._config = config
        self._exchange = exchange_client or TokenExchangeClient(config)
        self._store = token_store or TokenStore(
            config.token_file, CredentialCipher(config.encryption_key_bytes)
        )
        self._open_browser = open_browser
        self._state_factory = state_factory

        self._state = SessionState.IDLE
        self._outcome: Optional[SessionState] = None
        self._error: Optional[str] = None
        self._pending_state: Optional[str] = None

        self._lock = threading.Lock()
        self._server: Optional[_CallbackServer] = None
        self._serving = False
        self._serve_thread: Optional[threading.Thread] = None
        self._shutdown_requested = False
        self._shutdown_timer: Optional[threading.Timer] = None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def outcome(self) -> Optional[SessionState]:
        """``COMPLETED`` or ``FAILED`` once an exchange has run, else ``None``."""
        return self._outcome

    @property
    def error(self) -> Optional[str]:
        """Message of the most recent exchange failure."""
        return self._error

    @property
    def pending_state(self) -> Optional[str]:
        """The only state value a callback will currently be accepted with."""
        return self._pending_state

    @property
    def callback_path(self) -> str:
        return self._config.callback_path

    @property
    def authorization_url(self) -> Optional[str]:
        """Authorization URL for the pending state, if any."""
        if self._pending_state is None:
            return None
        return build_authorization_url(self._config, self._pending_state)

    @property
    def shutdown_pending(self) -> bool:
        """True while a delayed shutdown is armed and has not yet fired."""
        timer = self._shutdown_timer
        return timer is not None and timer.is_alive()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> str:
        """Bind the loopback listener and open the authorization URL.

        Returns:
            The authorization URL (carrying the freshly issued state).

        Raises:
            AuthError: If the session was already started, or the callback
                port cannot be bound (e.g. already in use).
        """
        if self._state is not SessionState.IDLE:
            raise AuthError(f"Authorization session already started (state: {self._state.value})")

        host, port = self._config.callback_host, self._config.callback_port
        try:
            self._server = _CallbackServer((host, port), self)
        except OSError as exc:
            logger.error("Cannot bind callback listener on %s:%d: %s", host, port, exc)
            raise AuthError(
                f"Cannot listen on {host}:{port} for the OAuth callback "
                f"({exc.strerror or exc}). Is another login already running?"
            ) from exc

        self._issue_state()
        self._state = SessionState.AWAITING_CALLBACK
        url = self.authorization_url
        assert url is not None
        logger.info("Listening for the authorization callback on %s", self._config.redirect_uri)

        if self._open_browser is not None:
            opener = self._open_browser
            # Some browsers block until the window closes
            threading.Thread(target=opener, args=(url,), daemon=True).start()

        return url

    def serve_forever(self, poll_interval: float = 0.1) -> None:
        """Serve callback requests one at a time until :meth:`shutdown`.

        Closes the listener and moves to ``CLOSED`` on return.

        Raises:
            AuthError: If :meth:`start` has not been called.
        """
        server = self._server
        if server is None:
            raise AuthError("Authorization session is not started")
        with self._lock:
            if self._shutdown_requested:
                server = None
            else:
                self._serving = True
                self._serve_thread = threading.current_thread()
        try:
            if server is not None:
                server.serve_forever(poll_interval=poll_interval)
        finally:
            with self._lock:
                self._serving = False
            self._close_server()

    def schedule_shutdown(self, delay: Optional[float] = None) -> None:
        """Arm a timer that calls :meth:`shutdown` after *delay* seconds.

        Any previously armed timer is cancelled. Defaults to
        ``config.shutdown_delay``.
        """
        delay = self._config.shutdown_delay if delay is None else delay
        timer = threading.Timer(delay, self.shutdown)
        timer.daemon = True
        with self._lock:
            previous = self._shutdown_timer
            self._shutdown_timer = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def shutdown(self) -> None:
        """Stop :meth:`serve_forever` now, cancelling any pending timer.

        Safe to call before serving starts (serving then returns at once)
        and from the serving thread itself (the stop is handed to a timer
        thread, since ``HTTPServer.shutdown`` would deadlock there).
        """
        self._cancel_timer()
        with self._lock:
            self._shutdown_requested = True
            serving = self._serving
            serve_thread = self._serve_thread
            server = self._server
        if not serving or server is None:
            return
        if threading.current_thread() is serve_thread:
            threading.Thread(target=server.shutdown, daemon=True).start()
            return
        server.shutdown()

    def close(self) -> None:
        """Cancel pending shutdown, stop serving, and release the port."""
        self.shutdown()
        self._close_server()

    def login(
        self,
        timeout: Optional[float] = None,
        on_ready: Optional[Callable[[str], Any]] = None,
    ) -> Optional[SessionState]:
        """Run the whole flow in the calling thread.

        Args:
            timeout: Give up after this many seconds. ``None`` waits until
                the session shuts itself down after a successful exchange.
            on_ready: Called with the authorization URL once the listener
                is bound, before serving starts.

        Returns:
            The session :attr:`outcome` (``None`` if no exchange ran before
            the timeout).
        """
        url = self.start()
        if on_ready is not None:
            on_ready(url)
        watchdog: Optional[threading.Timer] = None
        if timeout is not None:
            watchdog = threading.Timer(timeout, self.shutdown)
            watchdog.daemon = True
            watchdog.start()
        try:
            self.serve_forever()
        finally:
            if watchdog is not None:
                watchdog.cancel()
            self.close()
        return self._outcome

    def __enter__(self) -> AuthorizationSession:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Request handling
    # ------------------------------------------------------------------ #

    def handle_root(self) -> CallbackResponse:
        """Issue a fresh state and redirect to the provider.

        Every earlier state stops being accepted. Once the session has
        completed, the success page is served instead.
        """
        if self._state is SessionState.COMPLETED:
            return CallbackResponse(200, render_page("Authorization complete", SUCCESS_MESSAGE))
        if self._state in (SessionState.IDLE, SessionState.CLOSED):
            return CallbackResponse(
                409, render_page("Authorization failed", "No authorization session is active.")
            )

        self._issue_state()
        self._state = SessionState.AWAITING_CALLBACK
        url = self.authorization_url
        assert url is not None
        return CallbackResponse(302, "", {"Location": url})

    def handle_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> CallbackResponse:
        """Validate a provider redirect and, on a match, complete the exchange.

        Args:
            code: ``code`` query parameter.
            state: ``state`` query parameter.
            error: ``error`` query parameter, when the provider denied access.
            error_description: ``error_description`` query parameter.

        Returns:
            A 200 response with a success or failure page.
        """
        if not _states_match(state, self._pending_state):
            logger.warning("Rejected authorization callback: state mismatch")
            return CallbackResponse(
                200,
                render_page(
                    "Authorization failed",
                    "Invalid or expired state. Restart the sign-in from the terminal.",
                ),
            )

        if not code:
            reason = error_description or error or "No authorization code received."
            logger.warning("Rejected authorization callback: no code (%s)", error or "missing")
            return CallbackResponse(200, render_page("Authorization failed", reason))

        # One exchange per state value
        self._pending_state = None
        self._state = SessionState.EXCHANGING
        logger.info("State verified, exchanging authorization code")

        try:
            token = self._exchange.exchange(code)
            register_secret(token)
            self._store.store(token)
        except AuthError as exc:
            return self._fail(str(exc))
        except (ConfigError, OSError) as exc:
            return self._fail(f"Could not store token: {exc}")

        self._state = SessionState.COMPLETED
        self._outcome = SessionState.COMPLETED
        self._error = None
        logger.info("Authorization complete")
        self.schedule_shutdown()
        return CallbackResponse(200, render_page("Authorization complete", SUCCESS_MESSAGE))

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _issue_state(self) -> None:
        self._pending_state = self._state_factory()

    def _fail(self, message: str) -> CallbackResponse:
        self._state = SessionState.FAILED
        self._outcome = SessionState.FAILED
        self._error = message
        logger.error("Authorization failed: %s", message)
        return CallbackResponse(200, render_page("Authorization failed", message))

    def _cancel_timer(self) -> None:
        with self._lock:
            timer = self._shutdown_timer
            self._shutdown_timer = None
        if timer is not None and timer is not threading.current_thread():
            timer.cancel()

    def _close_server(self) -> None:
        with self._lock:
            server = self._server
            self._server = None
        if server is not None:
            server.server_close()
            self._pending_state = None
            self._state = SessionState.CLOSED
            logger.debug("Callback listener closed")
