"""Auth commands -- sign in, inspect, and forget the stored token.

Provides the ``gitpulse auth`` sub-command group::

    gitpulse auth login     # browser sign-in, token stored encrypted
    gitpulse auth status    # is a usable token stored?
    gitpulse auth logout    # delete the token file
"""

from __future__ import annotations

import webbrowser

import typer

from gitpulse.auth import AuthorizationSession, SessionState, open_token_store
from gitpulse.commands import exit_with, load_app_config
from gitpulse.exceptions import AuthError, ConfigError
from gitpulse.exit_codes import EXIT_AUTH_FAILURE
from gitpulse.output import error, info, success, suggest

auth_app = typer.Typer(no_args_is_help=True)


@auth_app.command("login")
def auth_login(
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the sign-in URL instead of opening a browser."
    ),
    timeout: float = typer.Option(
        300.0, "--timeout", min=1.0, help="Seconds to wait for the browser callback."
    ),
) -> None:
    """Sign in through the browser and store the access token.

    Starts a loopback listener on the configured redirect URI, opens the
    provider's authorization page, and waits for the redirect. The token is
    written to the token file only after the state check and the code
    exchange both succeed.

    Example::

        gitpulse auth login
        gitpulse auth login --no-browser --timeout 600
    """
    config = load_app_config()
    session = AuthorizationSession(
        config, open_browser=None if no_browser else webbrowser.open
    )

    def _announce(url: str) -> None:
        if no_browser:
            info("Open this URL in your browser to sign in:")
            info(url)
        else:
            info("Opening your browser to sign in...")
            host = config.callback_host
            if ":" in host:
                host = f"[{host}]"
            info(f"If it does not open, visit http://{host}:{config.callback_port}/")
        info("Waiting for the authorization callback (Ctrl-C to cancel).")

    try:
        outcome = session.login(timeout=timeout, on_ready=_announce)
    except AuthError as exc:
        exit_with(exc)

    if outcome is SessionState.COMPLETED:
        success("Signed in.")
        info(f"Token stored at {config.token_file}")
        return
    if outcome is SessionState.FAILED:
        error(f"Sign-in failed: {session.error}")
    else:
        error(f"Timed out after {timeout:g}s waiting for the authorization callback.")
    raise typer.Exit(code=EXIT_AUTH_FAILURE)


@auth_app.command("status")
def auth_status() -> None:
    """Report whether a usable token is stored. The token itself is never printed."""
    config = load_app_config()
    store = open_token_store(config)
    if not store.exists():
        info("Not signed in.")
        suggest("Sign in: gitpulse auth login")
        raise typer.Exit(code=ConfigError.exit_code)
    try:
        store.load()
    except ConfigError as exc:
        error(str(exc))
        suggest("Sign in again: gitpulse auth login")
        raise typer.Exit(code=exc.exit_code) from None
    success(f"Signed in (token stored at {store.path}).")


@auth_app.command("logout")
def auth_logout() -> None:
    """Delete the stored token."""
    config = load_app_config()
    store = open_token_store(config)
    if not store.exists():
        info("No stored token.")
        return
    store.clear()
    success("Signed out.")
