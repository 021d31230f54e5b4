"""Manual presenter -- the user pastes the redirect URL back into the terminal.

Used when the redirect URI is a custom app scheme or a host the terminal
cannot listen on. The URL is announced (and optionally opened in the
browser); the user signs in, copies the address the browser was
redirected to, and pastes it at the prompt. An empty line or EOF
cancels the attempt; the CLI turns Ctrl-C into a cancellation too.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import webbrowser
from typing import Callable, Optional

from pkceflow.flow import Presenter, SignInFlow

logger = logging.getLogger(__name__)


def _read_line() -> str:
    return input("Redirect URL> ")


class ManualPastePresenter(Presenter):
    """Announce the authorization URL and read the redirect from a prompt.

    Args:
        read_url: Blocking callable returning one line of user input. It
            runs in a daemon thread.
        announce: Called with the instructions and URL.
        open_browser: Also open the URL with :mod:`webbrowser`.
    """

    def __init__(
        self,
        read_url: Callable[[], str] = _read_line,
        announce: Optional[Callable[[str], None]] = None,
        open_browser: bool = False,
    ) -> None:
        self._read_url = read_url
        self._announce = announce
        self._open_browser = open_browser
        self._task: Optional[asyncio.Task[None]] = None

    async def present(self, url: str, flow: SignInFlow) -> None:
        if self._announce:
            self._announce(
                "Open this URL, sign in, then paste the address you were "
                f"redirected to:\n{url}"
            )
        if self._open_browser:
            webbrowser.open(url)
        self._task = asyncio.get_running_loop().create_task(self._read_loop(flow))

    async def dismiss(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _read_loop(self, flow: SignInFlow) -> None:
        while True:
            try:
                line = await _read_in_daemon_thread(self._read_url)
            except (EOFError, OSError):
                flow.cancel()
                return
            line = line.strip()
            if not line:
                flow.cancel()
                return
            if flow.handle_redirect(line) or flow.state.is_terminal:
                return
            if self._announce:
                self._announce("That URL does not match the redirect URI, try again.")
            logger.debug("Pasted URL was not addressed to this client")


async def _read_in_daemon_thread(read: Callable[[], str]) -> str:
    """Run the blocking *read* in a daemon thread and await its line.

    A reader still blocked in ``input()`` after the attempt is over must not
    keep the interpreter alive, so the default executor is not used.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def _settle(line: Optional[str], exc: Optional[BaseException]) -> None:
        if future.done():
            return
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(line or "")

    def _worker() -> None:
        try:
            line = read()
        except Exception as exc:
            result: tuple[Optional[str], Optional[BaseException]] = (None, exc)
        else:
            result = (line, None)
        # The loop is gone once the flow has finished; nobody awaits the line then
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(_settle, *result)

    threading.Thread(target=_worker, name="pkceflow-paste", daemon=True).start()
    return await future
