"""Redirect classification -- turn a callback URL into a :data:`RedirectOutcome`.

Matching rule: a URL belongs to the client when its scheme equals the
scheme of the configured ``redirect_uri`` (case-insensitive). Custom app
schemes (``myapp://cb``) are matched on scheme alone. For ``http`` and
``https`` redirect URIs, which every web page shares, host, port and path
must match as well.

:func:`handle_redirect` never raises on malformed input; every failure
resolves to a :class:`~pkceflow.models.RedirectError`.
"""

from __future__ import annotations

import logging
from urllib.parse import SplitResult, parse_qs, urlsplit

from pkceflow.models import (
    ClientConfig,
    RedirectError,
    RedirectNotMine,
    RedirectOutcome,
    RedirectSuccess,
)
from pkceflow.state import StateDecodeError, decode_state

logger = logging.getLogger(__name__)

_WEB_SCHEMES = ("http", "https")


def _split(url: str) -> SplitResult | None:
    try:
        parts = urlsplit(url)
        # Accessing .port validates it
        parts.port
    except ValueError:
        return None
    return parts


def redirect_matches(url: str, redirect_uri: str) -> bool:
    """Return True if *url* is addressed to *redirect_uri*."""
    incoming = _split(url)
    expected = _split(redirect_uri)
    if incoming is None or expected is None or not expected.scheme:
        return False
    if incoming.scheme.lower() != expected.scheme.lower():
        return False
    if expected.scheme.lower() in _WEB_SCHEMES:
        return (
            incoming.hostname == expected.hostname
            and incoming.port == expected.port
            and incoming.path.rstrip("/") == expected.path.rstrip("/")
        )
    return True


def _first(params: dict[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


def handle_redirect(url: str, client_config: ClientConfig) -> RedirectOutcome:
    """Classify an incoming redirect for *client_config*.

    Args:
        url: The candidate redirect URL.
        client_config: The active client configuration.

    Returns:
        :class:`RedirectNotMine` if the URL is not addressed to the client,
        :class:`RedirectError` if the provider reported an error or the
        code/state cannot be extracted, otherwise :class:`RedirectSuccess`.
    """
    if not redirect_matches(url, client_config.redirect_uri):
        return RedirectNotMine()

    params = parse_qs(urlsplit(url).query, keep_blank_values=True)

    error = _first(params, "error")
    if error is not None:
        description = _first(params, "error_description")
        logger.warning("Provider returned error on redirect: %s", error)
        return RedirectError(error=error, description=description or None)

    code = _first(params, "code")
    if not code:
        return RedirectError(
            error="invalid_request",
            description="auth code not found in redirect URL",
        )

    raw_state = _first(params, "state")
    try:
        state = decode_state(raw_state or "")
    except StateDecodeError as exc:
        logger.warning("Rejected redirect state: %s", exc)
        return RedirectError(
            error="invalid_state",
            description="Unable to determine state from redirect URL",
        )

    return RedirectSuccess(code=code, state=state)
