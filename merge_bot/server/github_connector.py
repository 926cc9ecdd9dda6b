"""GitHub connector contracts, error types, and factory helpers."""

from __future__ import annotations

import os
from typing import Any, Protocol

from merge_bot.server.github_auth import GitHubAuth, load_github_auth_from_env


class GitHubAPIError(RuntimeError):
    def __init__(
        self,
        message: str,
        reason_code: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reason_code = reason_code
        self.status_code = status_code


class RetryableGitHubError(GitHubAPIError):
    def __init__(
        self,
        message: str,
        reason_code: str,
        status_code: int | None = None,
        retry_after_s: float | None = None,
    ) -> None:
        super().__init__(message, reason_code=reason_code, status_code=status_code)
        self.retry_after_s = retry_after_s


class GitHubConnector(Protocol):
    """Connector contract for the pull-request operations the workflow consumes.

    ``repo`` is always ``owner/name``. Every method raises ``GitHubAPIError``
    on transport or API failure.
    """

    def get_pull_request(self, repo: str, number: int) -> dict[str, Any]: ...

    def list_commits(self, repo: str, number: int) -> list[dict[str, Any]]: ...

    def list_check_runs_for_ref(self, repo: str, ref: str) -> list[dict[str, Any]]: ...

    def list_reviews(self, repo: str, number: int) -> list[dict[str, Any]]: ...

    def create_review(self, repo: str, number: int, event: str) -> dict[str, Any]: ...

    def create_issue_comment(self, repo: str, number: int, body: str) -> dict[str, Any]: ...

    def post_directive(self, repo: str, number: int, directive: str) -> dict[str, Any]: ...


def build_connector_from_env(
    env: dict[str, str] | None = None,
    auth: GitHubAuth | None = None,
    timeout_s: float = 15.0,
) -> GitHubConnector:
    env_map = os.environ if env is None else env
    connector_type = (env_map.get("MERGE_BOT_GITHUB_CONNECTOR") or "api").strip().lower()

    if connector_type == "in_memory":
        from merge_bot.server.github_connector_inmemory import InMemoryGitHubConnector

        return InMemoryGitHubConnector()

    if connector_type != "api":
        raise ValueError(f"Unsupported MERGE_BOT_GITHUB_CONNECTOR: {connector_type}")

    from merge_bot.server.github_connector_api import GitHubAPIConnector

    return GitHubAPIConnector(
        auth=auth or load_github_auth_from_env(env_map),
        base_url=env_map.get("MERGE_BOT_GITHUB_API_URL") or "https://api.github.com",
        timeout_s=timeout_s,
    )


__all__ = [
    "GitHubAPIError",
    "GitHubAuth",
    "GitHubConnector",
    "RetryableGitHubError",
    "build_connector_from_env",
]
