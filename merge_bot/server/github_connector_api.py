"""GitHub REST API connector implementation."""

from __future__ import annotations

from typing import Any

import requests

from merge_bot.server.github_auth import GitHubAuth
from merge_bot.server.github_connector import GitHubAPIError, RetryableGitHubError


class GitHubAPIConnector:
    def __init__(
        self,
        auth: GitHubAuth | None = None,
        base_url: str = "https://api.github.com",
        session: requests.Session | None = None,
        timeout_s: float = 15.0,
    ) -> None:
        self.auth = auth or GitHubAuth(token=None, webhook_secret=None)
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout_s = timeout_s

    def get_pull_request(self, repo: str, number: int) -> dict[str, Any]:
        response = self._request("GET", f"/repos/{repo}/pulls/{number}")
        return response if isinstance(response, dict) else {}

    def list_commits(self, repo: str, number: int) -> list[dict[str, Any]]:
        response = self._request(
            "GET", f"/repos/{repo}/pulls/{number}/commits", params={"per_page": "100"}
        )
        return _rows(response)

    def list_check_runs_for_ref(self, repo: str, ref: str) -> list[dict[str, Any]]:
        response = self._request(
            "GET", f"/repos/{repo}/commits/{ref}/check-runs", params={"per_page": "100"}
        )
        if not isinstance(response, dict):
            return []
        return _rows(response.get("check_runs"))

    def list_reviews(self, repo: str, number: int) -> list[dict[str, Any]]:
        response = self._request(
            "GET", f"/repos/{repo}/pulls/{number}/reviews", params={"per_page": "100"}
        )
        return _rows(response)

    def create_review(self, repo: str, number: int, event: str) -> dict[str, Any]:
        response = self._request(
            "POST", f"/repos/{repo}/pulls/{number}/reviews", json={"event": event}
        )
        return response if isinstance(response, dict) else {}

    def create_issue_comment(self, repo: str, number: int, body: str) -> dict[str, Any]:
        response = self._request(
            "POST", f"/repos/{repo}/issues/{number}/comments", json={"body": body}
        )
        return response if isinstance(response, dict) else {}

    def post_directive(self, repo: str, number: int, directive: str) -> dict[str, Any]:
        return self.create_issue_comment(repo, number, directive)

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.auth.token:
            headers["Authorization"] = f"Bearer {self.auth.token}"

        try:
            response = self.session.request(
                method=method,
                url=f"{self.base_url}{path}",
                headers=headers,
                json=json,
                params=params,
                timeout=self.timeout_s,
            )
        except requests.Timeout as exc:
            raise RetryableGitHubError(
                f"GitHub API call timed out: {method} {path}", reason_code="github_timeout"
            ) from exc
        except requests.RequestException as exc:
            raise GitHubAPIError(
                f"GitHub API transport failure: {method} {path}: {exc}",
                reason_code="github_transport_error",
            ) from exc

        if response.status_code in {429, 403} and _looks_like_rate_limit(response):
            raise RetryableGitHubError(
                "GitHub API rate limited",
                reason_code="github_rate_limited",
                status_code=response.status_code,
                retry_after_s=_parse_retry_after((response.headers or {}).get("Retry-After")),
            )
        if response.status_code in {500, 502, 503, 504}:
            raise RetryableGitHubError(
                "GitHub API 5xx response",
                reason_code=f"github_{response.status_code}",
                status_code=response.status_code,
            )

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise GitHubAPIError(
                f"GitHub API error {response.status_code}: {method} {path}",
                reason_code=f"github_{response.status_code}",
                status_code=response.status_code,
            ) from exc

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(
                f"GitHub API returned invalid JSON: {method} {path}",
                reason_code="github_invalid_json",
                status_code=response.status_code,
            ) from exc


def _rows(response: Any) -> list[dict[str, Any]]:
    if not isinstance(response, list):
        return []
    return [row for row in response if isinstance(row, dict)]


def _looks_like_rate_limit(response: requests.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    try:
        payload = response.json()
    except ValueError:
        return False
    if not isinstance(payload, dict):
        return False
    message = str(payload.get("message", "")).lower()
    return "rate limit" in message


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    return parsed if parsed >= 0 else None
