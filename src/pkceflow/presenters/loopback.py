"""Loopback presenter -- system browser plus a local HTTP callback listener.

For redirect URIs of the form ``http://127.0.0.1:<port>/<path>`` the
presenter starts an HTTP server on that address, opens the authorization
URL in the user's browser, and forwards every request it receives to
:meth:`~pkceflow.flow.SignInFlow.handle_redirect` on the flow's event
loop. The first request the flow accepts ends the attempt; the server is
shut down when the flow calls :meth:`LoopbackBrowserPresenter.dismiss`.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from pkceflow.exceptions import InvalidClientConfigError
from pkceflow.flow import Presenter, SignInFlow

logger = logging.getLogger(__name__)

_DONE_PAGE = (
    "<html><body><h2>Sign-in finished. You can close this window "
    "and return to the terminal.</h2></body></html>"
)
_NOT_MINE_PAGE = "<html><body><h2>Not found.</h2></body></html>"

# How long the server thread waits for the event loop to classify a request
_DELIVERY_TIMEOUT = 10.0


def loopback_address(redirect_uri: str) -> tuple[str, int]:
    """Return the ``(host, port)`` to listen on for *redirect_uri*.

    Raises:
        InvalidClientConfigError: If *redirect_uri* is not an ``http`` URL
            with an explicit port.
    """
    parts = urlsplit(redirect_uri)
    try:
        port = parts.port
    except ValueError:
        port = None
    if parts.scheme != "http" or not parts.hostname or port is None:
        raise InvalidClientConfigError(
            "Loopback sign-in requires a redirect URI like "
            f"http://127.0.0.1:<port>/callback, got {redirect_uri!r}"
        )
    return parts.hostname, port


class LoopbackBrowserPresenter(Presenter):
    """Present the authorization URL in the system browser and listen for the redirect.

    Args:
        open_browser: Open the URL with :mod:`webbrowser`. When ``False``
            the URL is only announced.
        announce: Called with a human-readable message containing the URL
            (the CLI passes its stderr printer).
    """

    def __init__(
        self,
        open_browser: bool = True,
        announce: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._open_browser = open_browser
        self._announce = announce
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    async def present(self, url: str, flow: SignInFlow) -> None:
        config = flow.client_config
        assert config is not None, "present() called before a client config was set"
        host, port = loopback_address(config.redirect_uri)
        loop = asyncio.get_running_loop()

        try:
            self._server = HTTPServer((host, port), _make_handler(flow, loop, host, port))
        except OSError as exc:
            raise InvalidClientConfigError(
                f"Cannot listen on {host}:{port} for the redirect: {exc}"
            ) from exc

        self._thread = threading.Thread(
            target=self._server.serve_forever, name="pkceflow-callback", daemon=True
        )
        self._thread.start()
        logger.debug("Listening for redirect on %s:%d", host, port)

        if self._announce:
            self._announce(f"Open this URL to sign in:\n{url}")
        if self._open_browser:
            threading.Thread(target=webbrowser.open, args=(url,), daemon=True).start()

    async def dismiss(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        await asyncio.to_thread(server.shutdown)
        server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
        logger.debug("Redirect listener closed")


def _make_handler(
    flow: SignInFlow,
    loop: asyncio.AbstractEventLoop,
    host: str,
    port: int,
) -> type[BaseHTTPRequestHandler]:
    """Build a request handler class bound to *flow* and *loop*."""

    async def offer(url: str) -> bool:
        try:
            return flow.handle_redirect(url)
        except Exception:
            # Raised by an observer hook after the flow took the redirect
            logger.exception("Observer failed while handling the redirect")
            return flow.state.is_terminal

    class CallbackHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            url = f"http://{host}:{port}{self.path}"
            try:
                mine = asyncio.run_coroutine_threadsafe(offer(url), loop).result(
                    timeout=_DELIVERY_TIMEOUT
                )
            except (RuntimeError, concurrent.futures.TimeoutError) as exc:
                logger.warning("Could not deliver redirect to the flow: %s", exc)
                mine = False

            self.send_response(200 if mine else 404)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.end_headers()
            page = _DONE_PAGE if mine else _NOT_MINE_PAGE
            self.wfile.write(page.encode("utf-8"))

        def log_message(self, format: str, *args: Any) -> None:
            logger.debug("callback server: " + format, *args)

    return CallbackHandler
