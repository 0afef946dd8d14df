"""Inbox commands -- notifications, issues and pull requests.

Every command loads the stored token first and aborts before any network
call when it is missing or unusable.
"""

from __future__ import annotations

import typer

from gitpulse.api import (
    ApiClient,
    fetch_notifications,
    get_issue_details,
    get_pr_details,
    split_repo,
)
from gitpulse.commands import exit_with, load_app_config, load_token
from gitpulse.exceptions import ApiError
from gitpulse.output import format_response, info, print_table


def notifications_command(
    include_read: bool = typer.Option(
        False, "--all", "-a", help="Include notifications already marked as read."
    ),
) -> None:
    """List your notifications (unread only by default)."""
    config = load_app_config()
    token = load_token(config)
    try:
        with ApiClient(token, config.api_url) as client:
            items = fetch_notifications(client, include_read=include_read)
    except ApiError as exc:
        exit_with(exc)

    if not items:
        info("No notifications.")
        return
    rows = [
        [
            n.repository.full_name,
            n.subject.type,
            n.subject.title,
            n.reason,
            "yes" if n.unread else "no",
        ]
        for n in items
    ]
    print_table(["Repository", "Type", "Title", "Reason", "Unread"], rows, title="Notifications")


def issue_command(
    repo: str = typer.Argument(help="Repository as OWNER/REPO."),
    number: int = typer.Argument(help="Issue number."),
) -> None:
    """Show one issue."""
    config = load_app_config()
    token = load_token(config)
    try:
        owner, name = split_repo(repo)
        with ApiClient(token, config.api_url) as client:
            issue = get_issue_details(client, owner, name, number)
    except ApiError as exc:
        exit_with(exc)
    format_response(issue.model_dump(mode="json"))


def pr_command(
    repo: str = typer.Argument(help="Repository as OWNER/REPO."),
    number: int = typer.Argument(help="Pull request number."),
) -> None:
    """Show one pull request."""
    config = load_app_config()
    token = load_token(config)
    try:
        owner, name = split_repo(repo)
        with ApiClient(token, config.api_url) as client:
            pr = get_pr_details(client, owner, name, number)
    except ApiError as exc:
        exit_with(exc)
    format_response(pr.model_dump(mode="json"))
