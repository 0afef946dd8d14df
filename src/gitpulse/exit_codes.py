"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~gitpulse.exceptions.GitpulseError` subclass.
Shell wrappers can inspect the exit code to tell a missing login apart from
a failing API without parsing stderr.

Example::

    $ gitpulse notifications
    $ echo $?
    78  # EXIT_CONFIG_ERROR -- no stored token, run `gitpulse auth login`
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""The OAuth2 sign-in or token exchange failed."""

EXIT_API_FAILURE = 4
"""The API rejected a request or returned an unexpected payload."""

EXIT_CONFIG_ERROR = 78
"""Local configuration or stored credential state is missing or corrupt (``EX_CONFIG``)."""
