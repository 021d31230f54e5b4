"""pkceflow -- OpenID Connect sign-in with Authorization Code + PKCE.

The library half discovers an issuer's endpoints, builds the
authorization URL, recognises the redirect and redeems the code. The
:class:`~pkceflow.flow.SignInFlow` orchestrator sequences those steps
around a pluggable :class:`~pkceflow.flow.Presenter`. The ``pkceflow``
console script drives the same flow from a terminal.

Typical workflow::

    pkceflow profile add corp --client-id abc \\
        --redirect-uri http://127.0.0.1:8765/callback \\
        --issuer https://login.example.com
    pkceflow login corp

Modules:
    app: Typer application and CLI entry point.
    flow: Sign-in state machine, observer and presenter interfaces.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "0.1.0"
