"""Exception hierarchy for gitpulse.

All exceptions inherit from :class:`GitpulseError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`gitpulse.exit_codes`.
The top-level error handler in :func:`gitpulse.app.main` catches
``GitpulseError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    GitpulseError (exit 1)
    +-- ConfigError     (exit 78)
    |   +-- DecryptError (exit 78)
    +-- AuthError       (exit 3)
    +-- ApiError        (exit 4)
"""

from gitpulse.exit_codes import (
    EXIT_API_FAILURE,
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_GENERIC_FAILURE,
)


class GitpulseError(Exception):
    """Base exception for all gitpulse errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`gitpulse.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code

    @property
    def kind(self) -> str:
        """The error category name, e.g. ``"AuthError"``."""
        return type(self).__name__


class ConfigError(GitpulseError):
    """Raised for bad or missing configuration and corrupt local state (token file)."""

    exit_code = EXIT_CONFIG_ERROR


class DecryptError(ConfigError):
    """Raised when a sealed token fails authentication or has malformed parts.

    A subclass of :class:`ConfigError` because an undecryptable token file is
    a local-state problem, not a remote-auth one.
    """


class AuthError(GitpulseError):
    """Raised when the authorization flow or the token exchange fails."""

    exit_code = EXIT_AUTH_FAILURE


class ApiError(GitpulseError):
    """Raised when an API call fails or returns a payload of the wrong shape."""

    exit_code = EXIT_API_FAILURE
