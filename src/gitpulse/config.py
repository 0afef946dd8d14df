"""Configuration loading with XDG paths and environment precedence.

This module handles all process configuration for gitpulse:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.gitpulse/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Environment** -- :func:`load_config` reads the ``GITPULSE_*`` variables
  into a frozen :class:`~gitpulse.models.AppConfig`. A ``.env`` file in
  the working directory is loaded first with :mod:`dotenv`, without
  overriding variables already set in the real environment.

Configuration is loaded once per process; a missing or invalid variable is
a startup failure (:class:`~gitpulse.exceptions.ConfigError`) that names
every offending variable at once.
"""

from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from gitpulse.exceptions import ConfigError
from gitpulse.models import AppConfig

_APP_NAME = "gitpulse"
_ENV_PREFIX = "GITPULSE_"

# AppConfig field -> environment variable suffix
_ENV_FIELDS = {
    "client_id": "CLIENT_ID",
    "client_secret": "CLIENT_SECRET",
    "encryption_key": "ENCRYPTION_KEY",
    "redirect_uri": "REDIRECT_URI",
    "authorize_url": "AUTHORIZE_URL",
    "token_url": "TOKEN_URL",
    "api_url": "API_URL",
    "scopes": "SCOPES",
    "token_file": "TOKEN_FILE",
    "log_level": "LOG_LEVEL",
    "shutdown_delay": "SHUTDOWN_DELAY",
}

_REQUIRED = ("client_id", "client_secret", "encryption_key")


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory layout (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/gitpulse/`` (default ``~/.config/gitpulse/``).
    On macOS/Windows: ``~/.gitpulse/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (credentials, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/gitpulse/`` (default ``~/.local/share/gitpulse/``).
    On macOS/Windows: ``~/.gitpulse/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def default_token_file() -> Path:
    """Default location of the encrypted token record."""
    return get_data_dir() / "credentials" / "token.json"


# --- Environment ---


def _split_scopes(raw: str) -> tuple[str, ...]:
    return tuple(s for s in raw.replace(",", " ").split() if s)


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load a ``.env`` file into ``os.environ`` without overriding set variables.

    Args:
        path: File to load. Defaults to ``./.env``.

    Returns:
        ``True`` if a file was found and loaded.
    """
    env_path = path or Path.cwd() / ".env"
    if not env_path.is_file():
        return False
    return load_dotenv(env_path, override=False)


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Build the process configuration from environment variables.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        A frozen :class:`~gitpulse.models.AppConfig`.

    Raises:
        ConfigError: If a required variable is missing or any value fails
            validation. The message names every offending variable.
    """
    env = os.environ if environ is None else environ

    values: dict[str, object] = {}
    missing: list[str] = []
    for field, suffix in _ENV_FIELDS.items():
        raw = env.get(_ENV_PREFIX + suffix, "")
        if not raw:
            if field in _REQUIRED:
                missing.append(_ENV_PREFIX + suffix)
            continue
        if field == "scopes":
            values[field] = _split_scopes(raw)
        elif field == "token_file":
            values[field] = Path(raw).expanduser()
        elif field == "log_level":
            values[field] = raw.lower()
        else:
            values[field] = raw

    if missing:
        raise ConfigError(
            "Missing required environment variable(s): " + ", ".join(missing)
        )

    if "token_file" not in values:
        values["token_file"] = default_token_file()

    try:
        return AppConfig.model_validate(values)
    except ValidationError as exc:
        problems = []
        for err in exc.errors():
            field = str(err["loc"][0]) if err["loc"] else ""
            name = _ENV_PREFIX + _ENV_FIELDS.get(field, field.upper())
            problems.append(f"{name}: {err['msg']}")
        raise ConfigError("Invalid configuration: " + "; ".join(problems)) from exc
