"""In-memory GitHub connector for deterministic tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from merge_bot.server.github_connector import GitHubAPIError


MUTATING_OPERATIONS = {"create_review", "create_issue_comment"}

REVIEW_STATES = {
    "APPROVE": "APPROVED",
    "REQUEST_CHANGES": "CHANGES_REQUESTED",
    "COMMENT": "COMMENTED",
}


@dataclass(frozen=True)
class RecordedCall:
    operation: str
    repo: str
    target: str
    payload: dict[str, Any]


class InMemoryGitHubConnector:
    """In-memory connector used for deterministic workflow tests."""

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self.pull_requests: dict[tuple[str, int], dict[str, Any]] = {}
        self.commits: dict[tuple[str, int], list[dict[str, Any]]] = {}
        self.reviews: dict[tuple[str, int], list[dict[str, Any]]] = {}
        self.comments: dict[tuple[str, int], list[dict[str, Any]]] = {}
        # Snapshots are served in order; the last one repeats once the script runs out.
        self.check_run_script: dict[tuple[str, str], list[list[dict[str, Any]]]] = {}
        self.failures: dict[str, GitHubAPIError] = {}

    def add_pull_request(
        self,
        repo: str,
        number: int,
        state: str = "open",
        author: str = "dependabot[bot]",
        head_sha: str = "abc123",
    ) -> dict[str, Any]:
        pull_request = {
            "number": number,
            "state": state,
            "user": {"login": author},
            "head": {"sha": head_sha},
            "html_url": f"https://github.com/{repo}/pull/{number}",
        }
        self.pull_requests[(repo, number)] = pull_request
        return pull_request

    def add_commit(
        self, repo: str, number: int, author: str = "dependabot[bot]", verified: bool = True
    ) -> None:
        rows = self.commits.setdefault((repo, number), [])
        rows.append(
            {
                "sha": f"c{len(rows) + 1}",
                "author": {"login": author},
                "commit": {"verification": {"verified": verified}},
            }
        )

    def script_check_runs(self, repo: str, ref: str, *snapshots: list[dict[str, Any]]) -> None:
        self.check_run_script[(repo, ref)] = [list(snapshot) for snapshot in snapshots]

    def fail_on(self, operation: str, error: GitHubAPIError | None = None) -> None:
        self.failures[operation] = error or GitHubAPIError(
            f"Injected failure for {operation}", reason_code="injected_failure"
        )

    def calls_for(self, operation: str) -> list[RecordedCall]:
        return [call for call in self.calls if call.operation == operation]

    def mutating_calls(self) -> list[RecordedCall]:
        return [call for call in self.calls if call.operation in MUTATING_OPERATIONS]

    def get_pull_request(self, repo: str, number: int) -> dict[str, Any]:
        self._record("get_pull_request", repo, str(number))
        pull_request = self.pull_requests.get((repo, number))
        if pull_request is None:
            raise GitHubAPIError(
                f"Pull request not found: {repo}#{number}",
                reason_code="github_404",
                status_code=404,
            )
        return dict(pull_request)

    def list_commits(self, repo: str, number: int) -> list[dict[str, Any]]:
        self._record("list_commits", repo, str(number))
        return [dict(row) for row in self.commits.get((repo, number), [])]

    def list_check_runs_for_ref(self, repo: str, ref: str) -> list[dict[str, Any]]:
        self._record("list_check_runs_for_ref", repo, ref)
        script = self.check_run_script.get((repo, ref), [])
        if not script:
            return []
        snapshot = script.pop(0) if len(script) > 1 else script[0]
        return [dict(row) for row in snapshot]

    def list_reviews(self, repo: str, number: int) -> list[dict[str, Any]]:
        self._record("list_reviews", repo, str(number))
        return [dict(row) for row in self.reviews.get((repo, number), [])]

    def create_review(self, repo: str, number: int, event: str) -> dict[str, Any]:
        self._record("create_review", repo, str(number), {"event": event})
        rows = self.reviews.setdefault((repo, number), [])
        review = {"id": len(rows) + 1, "state": REVIEW_STATES.get(event, event)}
        rows.append(review)
        return dict(review)

    def create_issue_comment(self, repo: str, number: int, body: str) -> dict[str, Any]:
        self._record("create_issue_comment", repo, str(number), {"body": body})
        rows = self.comments.setdefault((repo, number), [])
        comment = {"id": len(rows) + 1, "body": body}
        rows.append(comment)
        return dict(comment)

    def post_directive(self, repo: str, number: int, directive: str) -> dict[str, Any]:
        return self.create_issue_comment(repo, number, directive)

    def _record(
        self, operation: str, repo: str, target: str, payload: dict[str, Any] | None = None
    ) -> None:
        self.calls.append(
            RecordedCall(operation=operation, repo=repo, target=target, payload=payload or {})
        )
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure
