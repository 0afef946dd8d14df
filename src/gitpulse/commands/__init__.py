"""Built-in CLI command groups and the helpers they share.

Commands load configuration through :func:`load_app_config` and turn any
:class:`~gitpulse.exceptions.GitpulseError` into an error line plus the
matching exit code with :func:`exit_with`.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from gitpulse.config import load_config, load_env_file
from gitpulse.exceptions import ConfigError, GitpulseError
from gitpulse.logs import configure_logging, register_secret
from gitpulse.models import AppConfig
from gitpulse.output import error, get_output, suggest


def load_app_config() -> AppConfig:
    """Load ``.env`` and the environment into an :class:`AppConfig`.

    The client secret and encryption key are registered for log redaction
    and the log level is applied before the config is returned. Exits the process on
    :class:`~gitpulse.exceptions.ConfigError`.
    """
    load_env_file()
    try:
        config = load_config()
    except ConfigError as exc:
        exit_with(exc)
    register_secret(config.client_secret.get_secret_value())
    register_secret(config.encryption_key.get_secret_value())
    configure_logging(config.log_level, verbose=get_output().is_verbose)
    return config


def load_token(config: AppConfig) -> str:
    """Load the stored access token, exiting with a login hint if it is unusable."""
    from gitpulse.auth import open_token_store

    try:
        token = open_token_store(config).load()
    except ConfigError as exc:
        error(str(exc))
        suggest("Sign in first: gitpulse auth login")
        raise typer.Exit(code=exc.exit_code) from None
    register_secret(token)
    return token


def exit_with(exc: GitpulseError) -> NoReturn:
    """Print *exc* to stderr and exit with its exit code."""
    error(str(exc))
    raise typer.Exit(code=exc.exit_code)
