"""Local listener that captures the login redirect from the browser.

The provider redirects the browser to the web intermediary URI
(``http://localhost:3000/auth/callback`` by default). For hosts without a
registered URL scheme, :class:`RedirectListener` binds a temporary HTTP
server to that address, answers the browser with a short HTML page and
returns the full redirect URL so it can be passed to
:meth:`~deskauth.auth.orchestrator.AuthOrchestrator.handle_callback`.
"""

from __future__ import annotations

import html
import logging
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlsplit

from deskauth.exceptions import CallbackTimeoutError

logger = logging.getLogger(__name__)


class RedirectListener:
    """One-shot HTTP server bound to the host, port and path of *redirect_uri*.

    Requests to other paths (``/favicon.ico``) get a 404 and are otherwise
    ignored. Use it as a context manager so the socket is bound before the
    browser is opened and released afterwards::

        with RedirectListener(config.web_redirect_uri) as listener:
            orchestrator.login()
            orchestrator.handle_callback(listener.wait())

    Args:
        redirect_uri: An ``http://`` URI with an explicit host.
        timeout: Seconds :meth:`wait` blocks before giving up.
    """

    def __init__(self, redirect_uri: str, timeout: float = 120.0) -> None:
        parts = urlsplit(redirect_uri)
        if parts.scheme != "http" or not parts.hostname:
            raise ValueError(f"Redirect listener needs an http:// URI, got {redirect_uri!r}")
        self._host = parts.hostname
        self._port = parts.port if parts.port is not None else 80
        self._path = parts.path or "/"
        self._base = f"{parts.scheme}://{parts.netloc}"
        self._timeout = timeout
        self._server: Optional[HTTPServer] = None
        self._captured: Optional[str] = None

    @property
    def port(self) -> int:
        if self._server is not None:
            return self._server.server_address[1]
        return self._port

    def __enter__(self) -> RedirectListener:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def start(self) -> None:
        """Bind the server socket."""
        self._bind()

    def _bind(self) -> HTTPServer:
        listener = self

        class RedirectHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                if urlsplit(self.path).path != listener._path:
                    self.send_error(404)
                    return

                listener._captured = listener._base + self.path
                params = parse_qs(urlsplit(self.path).query)
                if "code" in params:
                    body = "Login complete. You can close this window and return to the app."
                elif "error" in params:
                    body = f"Login failed: {params['error'][0]}"
                else:
                    body = "No authorization code received."

                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(
                    f"<html><body><h2>{html.escape(body)}</h2></body></html>".encode("utf-8")
                )

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("Redirect listener: " + format, *args)

        server = HTTPServer((self._host, self._port), RedirectHandler)
        self._server = server
        if self._port == 0:
            # Ephemeral port: report the one the OS picked.
            self._base = f"http://{self._host}:{self.port}"
        logger.debug("Listening for redirect on %s:%d%s", self._host, self.port, self._path)
        return server

    def wait(self) -> str:
        """Serve requests until the redirect arrives and return its full URL.

        Raises:
            CallbackTimeoutError: If nothing arrived within the timeout.
        """
        server = self._server if self._server is not None else self._bind()

        deadline = time.monotonic() + self._timeout
        while self._captured is None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CallbackTimeoutError(
                    f"No login redirect received within {self._timeout:g} seconds"
                )
            server.timeout = remaining
            server.handle_request()

        captured, self._captured = self._captured, None
        return captured

    def close(self) -> None:
        if self._server is not None:
            self._server.server_close()
            self._server = None
