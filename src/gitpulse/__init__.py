"""gitpulse -- read your GitHub inbox from the terminal.

A single-user CLI that signs in through an OAuth2 authorization-code flow,
keeps the resulting access token encrypted on disk, and uses it to read
notifications, issues and pull requests.

Typical workflow::

    gitpulse auth login        # browser sign-in, token stored encrypted
    gitpulse notifications     # list unread notifications

Modules:
    app: Typer application and CLI entry point.
    auth: Authorization session, token exchange, cipher and token store.
    api: Read-only API client and resource helpers.
    config: Environment-driven configuration and XDG paths.
    exceptions: Exception hierarchy with exit-code mapping.
    logs: Logging setup with secret redaction.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
