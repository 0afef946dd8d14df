"""Logging setup with secret redaction.

Every gitpulse module logs through a module-level
``logging.getLogger(__name__)``; this module configures the shared
``gitpulse`` parent logger once per process.

Secrets (client secret, encryption key, access tokens) are registered with
:func:`register_secret` and replaced with ``[REDACTED]`` by
:class:`SecretRedactionFilter` before any handler renders the record, and
:class:`RedactingFormatter` masks the final line again, so a secret in a
message, its arguments or an attached traceback never reaches a log line.

Usage::

    from gitpulse.logs import configure_logging, register_secret

    configure_logging("info")
    register_secret(config.client_secret.get_secret_value())
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Optional, TextIO

ROOT_LOGGER = "gitpulse"
REDACTED = "[REDACTED]"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_secrets: set[str] = set()
_secrets_lock = threading.Lock()


def register_secret(value: Optional[str]) -> None:
    """Mark *value* as secret so it is redacted from all log output.

    Empty values are ignored.
    """
    if not value:
        return
    with _secrets_lock:
        _secrets.add(value)


def clear_secrets() -> None:
    """Forget every registered secret. Used by tests."""
    with _secrets_lock:
        _secrets.clear()


def redact(text: str) -> str:
    """Return *text* with every registered secret replaced by ``[REDACTED]``."""
    with _secrets_lock:
        # Longest first so a secret containing another is masked whole.
        secrets = sorted(_secrets, key=len, reverse=True)
    for secret in secrets:
        if secret in text:
            text = text.replace(secret, REDACTED)
    return text


class SecretRedactionFilter(logging.Filter):
    """Rewrite each record so its rendered message contains no registered secret.

    The message is rendered with its arguments first and the result stored
    back on the record, so secrets passed as ``%s`` arguments are covered
    too.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        record.msg = redact(message)
        record.args = None
        return True


class RedactingFormatter(logging.Formatter):
    """Formatter whose whole output, tracebacks and stack info included, is redacted."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def configure_logging(
    level: str = "info",
    verbose: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Install a stderr handler with secret redaction on the ``gitpulse`` logger.

    Calling this again replaces the previously installed handler, so it is
    safe to call from both the CLI callback and tests.

    Args:
        level: One of ``debug``, ``info``, ``warning``, ``error``.
        verbose: Force ``DEBUG`` regardless of *level*.
        stream: Destination stream. Defaults to ``sys.stderr``.

    Returns:
        The configured ``gitpulse`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_gitpulse_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler._gitpulse_handler = True  # type: ignore[attr-defined]
    handler.setFormatter(
        RedactingFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    handler.addFilter(SecretRedactionFilter())

    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else _LEVELS.get(level, logging.INFO))
    logger.propagate = False
    return logger
