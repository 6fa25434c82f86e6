"""Interactive GitHub OAuth login through a local callback listener.

Pattern: Loopback Redirect
---------------------------
When no usable credential is cached, the user signs in through the browser:

  1. A short-lived HTTP listener is bound on the configured loopback port.
  2. The GitHub authorization URL (client ID, redirect URI, scope, state) is
     opened in the default browser and also printed to stderr.
  3. GitHub redirects the browser to ``/callback?code=...&state=...``.
  4. The listener exchanges the one-time code for an access token
     (server-to-server POST with the client secret) and answers the browser
     with a success or failure page.
  5. The listener is stopped shortly afterwards so the page can flush.

The wait for the callback is bounded by ``callback_timeout_seconds`` and the
awaiting task can be cancelled; either way the listener is released.  Only one
acquisition runs at a time per process, since they all share one fixed port.
"""

from __future__ import annotations

import asyncio
import html
import logging
import secrets
import socketserver
import threading
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
from rich.console import Console
from rich.panel import Panel

from weather_gate.config import GitHubSettings

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"

_SUCCESS_PAGE = b"""<html>
<body>
    <h1>Authentication Successful</h1>
    <p>You can close this window and return to your MCP client.</p>
    <script>setTimeout(() => window.close(), 2000);</script>
</body>
</html>
"""

_FAILURE_PAGE = """<html>
<body>
    <h1>Authentication Failed</h1>
    <p>{reason}</p>
    <p>You can close this window and try again.</p>
</body>
</html>
"""


class ConfigurationMissing(Exception):
    """The GitHub OAuth app's client ID or secret is not configured."""


class AcquisitionFailed(Exception):
    """The interactive login could not be carried out."""


class AcquisitionTimeout(AcquisitionFailed):
    """No callback arrived before the deadline."""


class _PendingCallback:
    """Bridges the listener thread and the coroutine awaiting the result."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        state: str,
        exchange: Callable[[str], str | None],
    ) -> None:
        self.future: asyncio.Future[str | None] = loop.create_future()
        self.state = state
        self.handled = False
        self._loop = loop
        self._exchange = exchange

    def handle(self, params: dict[str, str]) -> tuple[str | None, str | None]:
        """Process callback *params*; return ``(token, failure_reason)``."""
        if "error" in params:
            reason = params.get("error_description") or params["error"]
            return None, f"GitHub returned an error: {reason}"
        code = params.get("code")
        if not code:
            return None, "No authorization code was received."
        if params.get("state") != self.state:
            return None, "The login response did not match this request."
        token = self._exchange(code)
        if token is None:
            return None, "The authorization code could not be exchanged for a token."
        return token, None

    def resolve(self, token: str | None) -> None:
        self.handled = True
        self._loop.call_soon_threadsafe(self._set_result, token)

    def _set_result(self, token: str | None) -> None:
        if not self.future.done():
            self.future.set_result(token)


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def do_GET(self) -> None:  # noqa: N802 - required by BaseHTTPRequestHandler
        parsed = urlparse(self.path)
        if parsed.path != CALLBACK_PATH:
            self.send_response(404)
            self.end_headers()
            return

        pending = self.server.pending
        if pending.handled:
            self._send_page(409, _FAILURE_PAGE.format(reason="This login was already handled.").encode())
            return

        params = {key: values[0] for key, values in parse_qs(parsed.query).items()}
        token, reason = pending.handle(params)
        if token is None:
            logger.warning("OAuth callback failed: %s", reason)
            self._send_page(400, _FAILURE_PAGE.format(reason=html.escape(reason or "")).encode())
        else:
            self._send_page(200, _SUCCESS_PAGE)
        pending.resolve(token)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002 - match base signature
        logger.debug("callback listener: " + format, *args)

    def _send_page(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class _CallbackServer(HTTPServer):
    def __init__(self, address: tuple[str, int], pending: _PendingCallback) -> None:
        self.pending = pending
        super().__init__(address, _CallbackHandler)

    def server_bind(self) -> None:
        # HTTPServer.server_bind does a reverse DNS lookup of the host; loopback needs none.
        socketserver.TCPServer.server_bind(self)
        host, port = self.server_address[:2]
        self.server_name = host
        self.server_port = port


class OAuthFlow:
    """Obtains a fresh GitHub access token through the browser."""

    def __init__(
        self,
        settings: GitHubSettings,
        transport: httpx.BaseTransport | None = None,
        open_browser: Callable[[str], Any] = webbrowser.open,
        console: Console | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._open_browser = open_browser
        self._console = console or Console(stderr=True)
        self._lock = asyncio.Lock()

    def authorization_url(self, redirect_uri: str, state: str) -> str:
        query = urlencode({
            "client_id": self._settings.client_id,
            "redirect_uri": redirect_uri,
            "scope": self._settings.scope,
            "state": state,
        })
        return f"{self._settings.oauth_base.rstrip('/')}/login/oauth/authorize?{query}"

    async def acquire(self) -> str | None:
        """Run the browser login and return an access token, or ``None``.

        Returns ``None`` when the OAuth app is not configured or the user did
        not complete the login.  Raises ``AcquisitionFailed`` if the callback
        port cannot be bound and ``AcquisitionTimeout`` if no callback arrives
        in time.
        """
        if not self._settings.oauth_configured:
            logger.error(
                "Interactive login disabled: %s",
                ConfigurationMissing("GITHUB_CLIENT_ID and GITHUB_CLIENT_SECRET must both be set"),
            )
            return None

        async with self._lock:
            return await self._run()

    # -- private helpers -----------------------------------------------------

    async def _run(self) -> str | None:
        loop = asyncio.get_running_loop()
        pending = _PendingCallback(loop, secrets.token_urlsafe(16), self._exchange_code)
        server = self._bind(pending)
        thread = threading.Thread(target=server.serve_forever, name="oauth-callback", daemon=True)
        thread.start()
        logger.info("OAuth callback listener on %s:%s", *server.server_address[:2])

        try:
            port = server.server_address[1]
            redirect_uri = f"http://{self._settings.callback_host}:{port}{CALLBACK_PATH}"
            self._announce(self.authorization_url(redirect_uri, pending.state))

            timeout = self._settings.callback_timeout_seconds
            try:
                token = await asyncio.wait_for(pending.future, timeout=timeout)
            except TimeoutError as exc:
                raise AcquisitionTimeout(f"No OAuth callback received within {timeout:g}s") from exc

            # Let the response page reach the browser before closing the socket.
            await asyncio.sleep(self._settings.callback_shutdown_delay_seconds)
            return token
        finally:
            await asyncio.to_thread(_stop, server, thread)
            logger.info("OAuth callback listener stopped")

    def _bind(self, pending: _PendingCallback) -> _CallbackServer:
        address = (self._settings.callback_host, self._settings.callback_port)
        try:
            return _CallbackServer(address, pending)
        except OSError as exc:
            raise AcquisitionFailed(
                f"Could not bind OAuth callback listener on {address[0]}:{address[1]}: {exc}"
            ) from exc

    def _announce(self, url: str) -> None:
        self._console.print(
            Panel(
                "[bold]GitHub login required[/bold]\n"
                "Open this URL in a browser if it did not open automatically:\n\n"
                f"{url}",
                border_style="blue",
            )
        )
        try:
            opened = self._open_browser(url)
        except webbrowser.Error as exc:
            logger.warning("Could not open browser: %s", exc)
            return
        if opened is False:
            logger.warning("No browser available; open the login URL manually")

    def _exchange_code(self, code: str) -> str | None:
        """Trade the one-time *code* for an access token (runs on the listener thread)."""
        url = f"{self._settings.oauth_base.rstrip('/')}/login/oauth/access_token"
        body = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "code": code,
        }
        headers = {"Accept": "application/json", "User-Agent": self._settings.user_agent}
        try:
            with httpx.Client(transport=self._transport, timeout=self._settings.timeout_seconds) as client:
                response = client.post(url, json=body, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("OAuth code exchange failed: %s", exc)
            return None

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            detail = payload.get("error_description") or payload.get("error") if isinstance(payload, dict) else None
            logger.error("OAuth code exchange returned no access token: %s", detail or "unknown error")
            return None
        return token


def _stop(server: HTTPServer, thread: threading.Thread) -> None:
    server.shutdown()
    server.server_close()
    thread.join(timeout=1)
