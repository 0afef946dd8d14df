"""GitHub resource helpers built on :class:`~gitpulse.api.client.ApiClient`."""

from __future__ import annotations

from gitpulse.api.client import ApiClient
from gitpulse.exceptions import ApiError
from gitpulse.models import IssueDetails, Notification, PullRequestDetails


def split_repo(full_name: str) -> tuple[str, str]:
    """Split ``"owner/repo"`` into its parts.

    Raises:
        ApiError: If *full_name* is not of the form ``owner/repo``.
    """
    owner, sep, repo = full_name.partition("/")
    if not sep or not owner or not repo or "/" in repo:
        raise ApiError(f"Expected OWNER/REPO, got '{full_name}'")
    return owner, repo


def fetch_notifications(client: ApiClient, include_read: bool = False) -> list[Notification]:
    """List the authenticated user's notifications (unread only by default)."""
    params = {"all": "true"} if include_read else None
    return client.get("/notifications", list[Notification], params=params)


def get_issue_details(client: ApiClient, owner: str, repo: str, number: int) -> IssueDetails:
    return client.get(f"/repos/{owner}/{repo}/issues/{number}", IssueDetails)


def get_pr_details(client: ApiClient, owner: str, repo: str, number: int) -> PullRequestDetails:
    return client.get(f"/repos/{owner}/{repo}/pulls/{number}", PullRequestDetails)
