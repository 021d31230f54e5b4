"""Shared test fixtures for pkceflow.

Provides reusable client/oauth configs, a mock-transport HTTP client
factory, isolated config environments, and output management. These
fixtures are discovered by pytest and available to all test modules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import httpx
import pytest

from pkceflow.client import JsonHttpClient
from pkceflow.models import ClientConfig, OauthConfig, Profile
from pkceflow.output import OutputFormat, OutputManager, reset_output, set_output


ISSUER = "https://idp.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale. Resetting forces a
    fresh manager on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Flow value fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client_config() -> ClientConfig:
    """A custom-scheme client with a secret, as a native app would register it."""
    return ClientConfig(
        client_id="abc",
        redirect_uri="myapp://cb",
        issuer=ISSUER,
        scope="openid",
        client_secret="s3cr3t",
    )


@pytest.fixture
def oauth_config() -> OauthConfig:
    return OauthConfig(
        issuer=ISSUER,
        auth_url=f"{ISSUER}/authorize",
        token_url=f"{ISSUER}/token",
        user_info_url=f"{ISSUER}/userinfo",
    )


@pytest.fixture
def discovery_doc() -> dict[str, str]:
    return {
        "issuer": ISSUER,
        "authorization_endpoint": f"{ISSUER}/authorize",
        "token_endpoint": f"{ISSUER}/token",
        "userinfo_endpoint": f"{ISSUER}/userinfo",
    }


@pytest.fixture
def make_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], JsonHttpClient]:
    """Factory for a JsonHttpClient backed by an httpx.MockTransport handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> JsonHttpClient:
        return JsonHttpClient(timeout=5, transport=httpx.MockTransport(handler))

    return _make


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Forces XDG path resolution, points XDG_CONFIG_HOME and XDG_DATA_HOME
    at subdirectories of tmp_path, and clears all PKCEFLOW_* environment
    variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("pkceflow.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["PKCEFLOW_PROFILE", "PKCEFLOW_HTTP_TIMEOUT"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def sample_profile() -> Profile:
    return Profile(
        name="corp",
        client_id="abc",
        redirect_uri="http://127.0.0.1:8765/callback",
        issuer=ISSUER,
        scope="openid",
        client_secret_source="env:CORP_CLIENT_SECRET",
    )


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
