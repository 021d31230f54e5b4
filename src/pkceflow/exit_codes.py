"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to one sign-in error kind and is referenced by the
corresponding :class:`~pkceflow.exceptions.PkceflowError` subclass.
Shell wrappers can inspect the exit code to tell a misconfigured profile
apart from an unreachable identity provider without parsing stderr.

Example::

    $ pkceflow login corp
    $ echo $?
    5   # EXIT_SERVER_ERROR -- the token endpoint answered 400
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_CONFIG = 2
"""The client configuration is missing a field or contains an unparseable URL."""

EXIT_AUTH_FAILURE = 3
"""The identity provider rejected the sign-in or the redirect was malformed."""

EXIT_SERVER_ERROR = 5
"""A transport failure or a non-2xx response from the identity provider."""

EXIT_PARSE_ERROR = 7
"""A response body from the identity provider could not be parsed."""

EXIT_CANCELLED = 130
"""The user dismissed the sign-in before a redirect arrived."""
