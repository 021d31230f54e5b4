"""Typed JSON HTTP helper shared by discovery, token exchange and user info.

All three provider calls share one shape: send a GET or POST, check the
status, decode a JSON body. :class:`JsonHttpClient` does that once and
maps every failure onto the pkceflow error taxonomy:

* transport failure or timeout -> :class:`~pkceflow.exceptions.ServerError`
* non-2xx status -> :class:`~pkceflow.exceptions.ServerError` (with the
  provider's ``error`` field when the body is JSON)
* undecodable body -> :class:`~pkceflow.exceptions.ParseError`

Each call makes exactly one attempt. There is no retry.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from pkceflow.exceptions import ParseError, ServerError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class JsonHttpClient:
    """Asynchronous JSON-over-HTTP client with provider error mapping.

    Can be used as an async context manager to share one connection pool
    across several calls; when used without ``async with``, each request
    opens and closes its own :class:`httpx.AsyncClient`.

    Args:
        timeout: Per-request timeout in seconds. Expiry surfaces as
            :class:`~pkceflow.exceptions.ServerError`.
        transport: Optional httpx transport (tests pass
            :class:`httpx.MockTransport`).
        verify: TLS verification setting forwarded to httpx.

    Example::

        async with JsonHttpClient(timeout=10) as http:
            doc = await http.request_json("GET", discovery_url)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._verify = verify
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeout(self) -> float:
        return self._timeout

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> JsonHttpClient:
        self._client = self._new_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict[str, str]] = None,
        data: Optional[dict[str, str]] = None,
        description: str = "request",
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Args:
            method: HTTP method (``GET`` or ``POST``).
            url: Absolute URL.
            headers: Extra request headers. ``Accept: application/json`` is
                always sent unless overridden.
            data: Form fields, sent as ``application/x-www-form-urlencoded``.
            description: Short label used in error messages
                (e.g. ``"token exchange"``).

        Returns:
            Whatever JSON value the body holds.

        Raises:
            ServerError: On transport failure, timeout, or non-2xx status.
            ParseError: If a 2xx body is not valid JSON.
        """
        merged_headers = {"Accept": "application/json", **(headers or {})}
        logger.debug("%s %s (%s)", method, url, description)

        if self._client is not None:
            response = await self._send(self._client, method, url, merged_headers, data, description)
        else:
            async with self._new_client() as client:
                response = await self._send(client, method, url, merged_headers, data, description)

        logger.debug("%s %s -> HTTP %d", method, url, response.status_code)

        if not response.is_success:
            raise _status_error(response, description)

        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(
                f"{description} returned a body that is not valid JSON"
            ) from exc

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            verify=self._verify,
            follow_redirects=True,
        )

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: dict[str, str],
        data: Optional[dict[str, str]],
        description: str,
    ) -> httpx.Response:
        try:
            return await client.request(method, url, headers=headers, data=data)
        except httpx.TimeoutException as exc:
            raise ServerError(
                f"{description} timed out after {self._timeout:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise ServerError(f"{description} failed: {exc}") from exc


def _status_error(response: httpx.Response, description: str) -> ServerError:
    """Build a :class:`ServerError` for a non-2xx response."""
    status = response.status_code
    error_code: str | None = None
    detail = ""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        if isinstance(body.get("error"), str):
            error_code = body["error"]
            detail = error_code
            if isinstance(body.get("error_description"), str):
                detail += f": {body['error_description']}"
        else:
            detail = str(body.get("message") or body.get("detail") or "")
    elif response.text:
        detail = response.text[:200]

    prefix = f"{description} failed with HTTP {status}"
    return ServerError(
        f"{prefix}: {detail}" if detail else prefix,
        status_code=status,
        error_code=error_code,
    )
