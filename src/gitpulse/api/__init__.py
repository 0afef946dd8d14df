"""Read-only API layer: an authenticated client and GitHub resource helpers."""

from gitpulse.api.client import ApiClient
from gitpulse.api.github import (
    fetch_notifications,
    get_issue_details,
    get_pr_details,
    split_repo,
)

__all__ = [
    "ApiClient",
    "fetch_notifications",
    "get_issue_details",
    "get_pr_details",
    "split_repo",
]
