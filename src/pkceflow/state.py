"""Encoding of the caller-defined auth state carried in the ``state`` parameter.

The state is a JSON object chosen by the caller. It travels to the
identity provider inside the authorization URL and comes back unchanged
on the redirect. One fixed encoding is used in both directions:

    compact JSON  ->  UTF-8  ->  base64url  ->  ``=`` padding stripped

Base64url keeps the value free of characters that providers or
intermediate redirects are known to re-escape, so the redirect handler
only has to undo the percent-encoding of the query string before
calling :func:`decode_state`.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

SOURCE_REDIRECT_URL_KEY = "source_redirect_url"
AUTHORIZE_URL_KEY = "authorize_url"


class StateDecodeError(ValueError):
    """Raised by :func:`decode_state` for any value it cannot turn back into a mapping."""


def encode_state(state: dict[str, Any]) -> str:
    """Encode *state* for the authorization request.

    Raises:
        TypeError: If *state* contains values that are not JSON-serializable.
        ValueError: If *state* contains circular references or non-finite floats.
    """
    payload = json.dumps(
        state, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    )
    return base64.urlsafe_b64encode(payload.encode("utf-8")).rstrip(b"=").decode("ascii")


def decode_state(value: str) -> dict[str, Any]:
    """Invert :func:`encode_state`.

    Accepts values with or without padding.

    Raises:
        StateDecodeError: If *value* is not base64url, not UTF-8, not JSON,
            or not a JSON object.
    """
    if not value:
        raise StateDecodeError("state is empty")
    padded = value + "=" * (-len(value) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        state = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise StateDecodeError(f"state is not valid encoded JSON: {exc}") from exc
    if not isinstance(state, dict):
        raise StateDecodeError("state does not decode to a JSON object")
    return state


def with_default_state(
    state: dict[str, Any] | None,
    redirect_uri: str,
    auth_url: str,
) -> dict[str, Any]:
    """Return a copy of *state* with the default keys filled in.

    ``source_redirect_url`` defaults to the client's redirect URI and
    ``authorize_url`` to the discovered authorization endpoint. Values the
    caller already supplied are kept.
    """
    merged = dict(state or {})
    merged.setdefault(SOURCE_REDIRECT_URL_KEY, redirect_uri)
    merged.setdefault(AUTHORIZE_URL_KEY, auth_url)
    return merged
