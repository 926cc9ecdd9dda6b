"""Side-effecting steps: rebase and merge directives, idempotent approval."""

from __future__ import annotations

from merge_bot.models.event_contracts import PullRequestEvent
from merge_bot.workflow.context import WorkflowContext


APPROVED_STATE = "APPROVED"


def directive_body(ctx: WorkflowContext, command: str) -> str:
    return f"{ctx.settings.bot_mention} {command}"


def request_rebase(ctx: WorkflowContext, event: PullRequestEvent) -> None:
    ctx.call("post_directive", event.full_name, event.number, directive_body(ctx, "rebase"))


def approve(ctx: WorkflowContext, event: PullRequestEvent) -> bool:
    """Submit an approving review unless one already exists; returns whether one was created."""

    reviews = ctx.call("list_reviews", event.full_name, event.number)
    if any(str(review.get("state", "")) == APPROVED_STATE for review in reviews):
        return False
    ctx.call("create_review", event.full_name, event.number, "APPROVE")
    return True


def merge(ctx: WorkflowContext, event: PullRequestEvent) -> None:
    ctx.call("post_directive", event.full_name, event.number, directive_body(ctx, "merge"))
