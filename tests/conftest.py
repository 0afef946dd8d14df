"""Shared test fixtures for gitpulse.

Provides reusable fixtures for building configurations, isolating XDG
directories and ``GITPULSE_*`` variables, managing output and logging
state, and running CLI commands. These fixtures are automatically
discovered by pytest and available to all test modules.
"""

from __future__ import annotations

import logging
import socket
from pathlib import Path

import pytest

from gitpulse.auth import CredentialCipher, TokenStore
from gitpulse.logs import ROOT_LOGGER, clear_secrets
from gitpulse.models import AppConfig
from gitpulse.output import OutputFormat, OutputManager, reset_output, set_output

TEST_KEY = "0123456789abcdef0123456789abcdef"
TEST_SECRET = "client-secret-value"


def find_free_port() -> int:
    """Find a free TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_config(tmp_path: Path, **overrides: object) -> AppConfig:
    """Build an AppConfig with test defaults overridden by *overrides*."""
    values: dict[str, object] = {
        "client_id": "test-client",
        "client_secret": TEST_SECRET,
        "encryption_key": TEST_KEY,
        "redirect_uri": f"http://127.0.0.1:{find_free_port()}/callback",
        "authorize_url": "https://provider.example.com/login/oauth/authorize",
        "token_url": "https://provider.example.com/login/oauth/access_token",
        "api_url": "https://api.example.com",
        "token_file": tmp_path / "credentials" / "token.json",
        "shutdown_delay": 30.0,
    }
    values.update(overrides)
    return AppConfig(**values)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset output, redaction and log handlers after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale. Resetting forces a
    fresh manager to be created on next use.
    """
    yield
    reset_output()
    clear_secrets()
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_gitpulse_handler", False):
            logger.removeHandler(handler)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """A valid configuration with a free loopback callback port."""
    return make_config(tmp_path)


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(TEST_KEY.encode("utf-8"))


@pytest.fixture
def token_store(app_config: AppConfig, cipher: CredentialCipher) -> TokenStore:
    return TokenStore(app_config.token_file, cipher)


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points the XDG directories at subdirectories of tmp_path, clears every
    ``GITPULSE_*`` variable, sets the three required ones, and changes the
    working directory to tmp_path so no real ``.env`` is picked up.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "GITPULSE_REDIRECT_URI",
        "GITPULSE_AUTHORIZE_URL",
        "GITPULSE_TOKEN_URL",
        "GITPULSE_API_URL",
        "GITPULSE_SCOPES",
        "GITPULSE_TOKEN_FILE",
        "GITPULSE_LOG_LEVEL",
        "GITPULSE_SHUTDOWN_DELAY",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("GITPULSE_CLIENT_ID", "test-client")
    monkeypatch.setenv("GITPULSE_CLIENT_SECRET", TEST_SECRET)
    monkeypatch.setenv("GITPULSE_ENCRYPTION_KEY", TEST_KEY)
    monkeypatch.chdir(tmp_path)
    return tmp_path


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
