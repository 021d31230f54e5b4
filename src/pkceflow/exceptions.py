"""Exception hierarchy for pkceflow.

All exceptions inherit from :class:`PkceflowError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`pkceflow.exit_codes`
and a ``kind`` naming the sign-in error category. The flow orchestrator
never lets these escape across its asynchronous boundary; it hands them to
:meth:`~pkceflow.flow.FlowObserver.on_error` instead. The CLI entry point
in :func:`pkceflow.app.main` catches ``PkceflowError`` and exits with the
matching code.

Subclass hierarchy::

    PkceflowError (exit 1)
    +-- InvalidClientConfigError  (exit 2)   kind "InvalidClientConfig"
    +-- AuthError                 (exit 3)   kind "AuthError"
    |   +-- FlowInProgressError   (exit 3)
    +-- ServerError               (exit 5)   kind "ServerError"
    +-- ParseError                (exit 7)   kind "ParseError"
    +-- SignInCancelledError      (exit 130) kind "Cancelled"
    +-- ConfigError               (exit 1)
"""

from __future__ import annotations

from pkceflow.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_CONFIG,
    EXIT_PARSE_ERROR,
    EXIT_SERVER_ERROR,
)


class PkceflowError(Exception):
    """Base exception for all pkceflow errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    kind: str = "Error"

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidClientConfigError(PkceflowError):
    """Raised for local misconfiguration: missing fields or unparseable URLs. Never retried."""

    exit_code = EXIT_INVALID_CONFIG
    kind = "InvalidClientConfig"


class AuthError(PkceflowError):
    """Raised when the provider returns an explicit OAuth error or the redirect is malformed.

    Args:
        message: Human-readable error description.
        error_code: The OAuth ``error`` value (e.g. ``access_denied``), if any.
    """

    exit_code = EXIT_AUTH_FAILURE
    kind = "AuthError"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class FlowInProgressError(AuthError):
    """Raised when ``sign_in`` is called while another attempt is still running."""


class ServerError(PkceflowError):
    """Raised on transport failure, timeout, or a non-2xx / incomplete provider response.

    Safe to retry the whole request.

    Args:
        message: Human-readable error description.
        status_code: HTTP status of the response, if one was received.
        error_code: The provider's ``error`` field (e.g. ``invalid_grant``), if any.
    """

    exit_code = EXIT_SERVER_ERROR
    kind = "ServerError"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class ParseError(PkceflowError):
    """Raised when a provider response body is not the JSON document we expect."""

    exit_code = EXIT_PARSE_ERROR
    kind = "ParseError"


class SignInCancelledError(PkceflowError):
    """Raised when the user dismisses the sign-in surface. Terminal, never retried."""

    exit_code = EXIT_CANCELLED
    kind = "Cancelled"


class ConfigError(PkceflowError):
    """Raised for on-disk configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
