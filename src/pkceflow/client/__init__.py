"""HTTP client layer.

Exports :class:`JsonHttpClient`, the single place where provider
responses are checked and decoded.
"""

from pkceflow.client.http import DEFAULT_TIMEOUT, JsonHttpClient

__all__ = ["DEFAULT_TIMEOUT", "JsonHttpClient"]
