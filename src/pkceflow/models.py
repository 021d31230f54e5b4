"""Canonical Pydantic models shared across all pkceflow modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Flow value types** -- created per sign-in attempt and never mutated:
    :class:`ClientConfig` and :class:`OauthConfig`.

**Outcomes and states** -- what the redirect handler and the orchestrator
report:
    :class:`RedirectSuccess`, :class:`RedirectError`,
    :class:`RedirectNotMine` (together :data:`RedirectOutcome`) and
    :class:`FlowState`.

**Configuration models** -- serialised as JSON in the user's config
directory:
    :class:`Profile` and :class:`GlobalConfig`.

All models use Pydantic v2. The flow value types are frozen so that the
orchestrator can hand them to observers without defensive copies.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pkceflow.pkce import generate_code_challenge, generate_code_verifier

DEFAULT_SCOPE = "openid offline_access device_sso email profile"


# --- Flow value types ---


class ClientConfig(BaseModel):
    """App-supplied OAuth parameters for one sign-in attempt.

    A PKCE pair is generated at construction unless a ``code_verifier`` is
    passed in, and ``code_challenge`` is always derived from the verifier.
    Instances are immutable.

    Example::

        config = ClientConfig(
            client_id="abc",
            redirect_uri="myapp://cb",
            issuer="https://idp.example.com",
            scope="openid",
        )
        assert config.code_challenge == generate_code_challenge(config.code_verifier)
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    redirect_uri: str
    issuer: str
    authority_id: Optional[str] = None
    scope: str = Field(
        default=DEFAULT_SCOPE, description="Space-delimited list of scopes"
    )
    client_secret: Optional[str] = Field(
        default=None,
        repr=False,
        description="Only needed for the token exchange; consider whether "
        "the secret should live client side at all",
    )
    login_hint: Optional[str] = None
    code_verifier: str = Field(default="", repr=False)
    code_challenge: str = ""

    @model_validator(mode="before")
    @classmethod
    def _derive_pkce(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        verifier = data.get("code_verifier") or generate_code_verifier()
        challenge = generate_code_challenge(verifier)
        supplied = data.get("code_challenge")
        if supplied and supplied != challenge:
            raise ValueError("code_challenge does not match code_verifier")
        data["code_verifier"] = verifier
        data["code_challenge"] = challenge
        return data

    def model_copy(
        self, *, update: Optional[Mapping[str, Any]] = None, deep: bool = False
    ) -> ClientConfig:
        """Copy the config. Updates are re-validated so the PKCE pair stays consistent.

        Updating ``code_verifier`` alone re-derives ``code_challenge``; a
        mismatching pair raises :class:`pydantic.ValidationError`.
        """
        if not update:
            return super().model_copy(deep=deep)
        data = self.model_dump()
        data.update(update)
        if "code_verifier" in update and "code_challenge" not in update:
            data.pop("code_challenge", None)
        return type(self).model_validate(data)

    @classmethod
    def from_profile(
        cls, profile: Profile, client_secret: Optional[str] = None
    ) -> ClientConfig:
        """Build a fresh config (with a fresh PKCE pair) from a saved profile."""
        return cls(
            client_id=profile.client_id,
            redirect_uri=profile.redirect_uri,
            issuer=profile.issuer,
            authority_id=profile.authority_id,
            scope=profile.scope,
            client_secret=client_secret,
            login_hint=profile.login_hint,
        )


class OauthConfig(BaseModel):
    """Endpoint URLs discovered from the issuer's well-known configuration."""

    model_config = ConfigDict(frozen=True)

    issuer: str
    auth_url: str
    token_url: str
    user_info_url: str


# --- Redirect outcomes ---


class RedirectSuccess(BaseModel):
    """The redirect carried an authorization code and a decodable state."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    code: str
    state: dict[str, Any] = Field(default_factory=dict)


class RedirectError(BaseModel):
    """The provider reported an error, or the redirect could not be used."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    error: str
    description: Optional[str] = None

    @property
    def message(self) -> str:
        if self.description:
            return f"{self.error} {self.description}"
        return self.error


class RedirectNotMine(BaseModel):
    """The URL does not belong to the configured redirect URI; let it through."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["not_mine"] = "not_mine"


RedirectOutcome = Annotated[
    Union[RedirectSuccess, RedirectError, RedirectNotMine],
    Field(discriminator="kind"),
]


class FlowState(str, enum.Enum):
    """States of :class:`~pkceflow.flow.SignInFlow`."""

    IDLE = "idle"
    CONFIG_REQUESTED = "config_requested"
    CONFIG_RECEIVED = "config_received"
    DISCOVERY_IN_FLIGHT = "discovery_in_flight"
    OAUTH_READY = "oauth_ready"
    AUTH_STATE_REQUESTED = "auth_state_requested"
    PRESENTING = "presenting"
    REDIRECT_PENDING = "redirect_pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.COMPLETED, FlowState.FAILED)


# --- Configuration ---


class Profile(BaseModel):
    """A named identity-provider client registration.

    Stored as ``<config_dir>/profiles/<name>.json``. Secrets are never
    stored inline: ``client_secret_source`` points at where to read one
    (``env:VAR``, ``file:/path`` or ``prompt``).

    Example::

        Profile(
            name="corp",
            client_id="abc",
            redirect_uri="http://127.0.0.1:8765/callback",
            issuer="https://login.example.com",
            client_secret_source="env:CORP_CLIENT_SECRET",
        )
    """

    name: str
    client_id: str
    redirect_uri: str
    issuer: str
    authority_id: Optional[str] = None
    use_authority_path: bool = Field(
        default=False,
        description="Discover under {issuer}/{authority_id or 'default'}/",
    )
    scope: str = DEFAULT_SCOPE
    client_secret_source: Optional[str] = None
    login_hint: Optional[str] = None


class GlobalConfig(BaseModel):
    """Global settings stored in ``<config_dir>/config.json``."""

    default_profile: Optional[str] = None
    output_format: str = Field(default="auto", description="auto, json, plain, rich")
    http_timeout: float = Field(default=30.0, gt=0)
    report_cancellation: bool = Field(
        default=True,
        description="Report a dismissed sign-in as an error instead of ignoring it",
    )
