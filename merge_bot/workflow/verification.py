"""Read-only gates: PR still open, bot authorship, check-run completion."""

from __future__ import annotations

from typing import Any, Literal

from merge_bot.models.event_contracts import PullRequestEvent
from merge_bot.workflow.context import WorkflowContext
from merge_bot.workflow.errors import AuthorshipVerificationFailed


PASSING_CONCLUSIONS = {"success", "neutral", "skipped"}

ChecksState = Literal["pending", "complete", "failing"]


def check_pr_is_open(ctx: WorkflowContext, event: PullRequestEvent) -> bool:
    pull_request = ctx.call("get_pull_request", event.full_name, event.number)
    return str(pull_request.get("state", "")) == "open"


def verify_dependabot(ctx: WorkflowContext, event: PullRequestEvent) -> None:
    """Require every commit of a bot-authored PR to be verified and authored by the bot.

    PRs opened by anyone else pass without a remote read.
    """

    bot_login = ctx.settings.bot_login
    if event.author != bot_login:
        return

    commits = ctx.call("list_commits", event.full_name, event.number)
    for commit in commits:
        if not _commit_is_verified(commit) or _commit_author(commit) != bot_login:
            raise AuthorshipVerificationFailed(
                f"not all commits are signed and authored by {bot_login}",
                reason_code="commit_authorship_mismatch",
            )


def evaluate_check_runs(
    check_runs: list[dict[str, Any]], require_passing_conclusion: bool = False
) -> ChecksState:
    if any(str(run.get("status", "")) != "completed" for run in check_runs):
        return "pending"
    if require_passing_conclusion and any(
        str(run.get("conclusion") or "") not in PASSING_CONCLUSIONS for run in check_runs
    ):
        return "failing"
    return "complete"


def poll_checks_complete(ctx: WorkflowContext, event: PullRequestEvent) -> bool:
    settings = ctx.settings
    attempts = settings.poll_max_attempts

    for attempt in range(1, attempts + 1):
        check_runs = ctx.call("list_check_runs_for_ref", event.full_name, event.head_sha)
        state = evaluate_check_runs(check_runs, settings.require_passing_conclusion)
        if state == "complete":
            return True
        if state == "failing":
            # Conclusions are final once every run completed.
            ctx.log.info("check runs completed with failing conclusions", attempt=attempt)
            return False
        ctx.log.debug("check runs still pending", attempt=attempt, max_attempts=attempts)
        if attempt < attempts:
            ctx.sleep(settings.poll_interval_s)
    return False


def _commit_is_verified(commit: dict[str, Any]) -> bool:
    verification = (commit.get("commit") or {}).get("verification") or {}
    return bool(verification.get("verified"))


def _commit_author(commit: dict[str, Any]) -> str:
    return str((commit.get("author") or {}).get("login", ""))
