"""Sequences verification and remediation for one pull-request event."""

from __future__ import annotations

import threading
from typing import Any

from merge_bot.models.event_contracts import PullRequestEvent
from merge_bot.models.policy_contracts import Policy, PolicyTable
from merge_bot.server.github_connector import GitHubConnector
from merge_bot.shared.logging import get_logger
from merge_bot.shared.settings import Settings
from merge_bot.workflow import remediation, verification
from merge_bot.workflow.context import WorkflowContext
from merge_bot.workflow.errors import (
    ChecksIncomplete,
    NotOpen,
    RemoteCallFailed,
    WorkflowError,
)
from merge_bot.workflow.outcomes import WorkflowOutcome, aggregate_outcomes


class WorkflowRun:
    """One run per delivery; holds the progress trail and per-policy outcomes."""

    def __init__(
        self,
        connector: GitHubConnector,
        settings: Settings,
        cancelled: threading.Event | None = None,
        log: Any = None,
    ) -> None:
        self.connector = connector
        self.settings = settings
        self.cancelled = cancelled if cancelled is not None else threading.Event()
        self.log = log if log is not None else get_logger()
        self.trail: list[dict[str, Any]] = []
        self.outcomes: list[WorkflowOutcome] = []
        self.outcome: WorkflowOutcome | None = None

    def run(self, event: PullRequestEvent, policy_table: PolicyTable) -> WorkflowOutcome:
        log = self.log.bind(pull_request=event.log_context())
        ctx = WorkflowContext(
            connector=self.connector,
            settings=self.settings,
            log=log,
            cancelled=self.cancelled,
        )

        for policy in policy_table.matching(event.repository):
            try:
                self._run_policy(ctx, event, policy)
            except RemoteCallFailed as exc:
                log.error(
                    "failed to run action",
                    error=str(exc),
                    reason_code=exc.reason_code,
                    operation=exc.operation,
                )
                self._finish(policy, WorkflowOutcome.from_error(exc, repository=policy.repository))
                break
            except NotOpen as exc:
                log.info("pull request is not open", reason=str(exc))
                self._finish(policy, WorkflowOutcome.from_error(exc, repository=policy.repository))
                break
            except WorkflowError as exc:
                log.error("failed to run action", error=str(exc), reason_code=exc.reason_code)
                self._finish(policy, WorkflowOutcome.from_error(exc, repository=policy.repository))
                continue
            self._finish(policy, WorkflowOutcome.success(repository=policy.repository))

        self.outcome = aggregate_outcomes(self.outcomes, repository=event.repository)
        return self.outcome

    def _run_policy(self, ctx: WorkflowContext, event: PullRequestEvent, policy: Policy) -> None:
        self._progress(ctx, policy, "started", "running action")
        ctx.sleep(self.settings.settle_delay_s)

        if not verification.check_pr_is_open(ctx, event):
            raise NotOpen(f"pull request #{event.number} is not open")
        self._progress(ctx, policy, "open_checked", "verified pull request is open")

        verification.verify_dependabot(ctx, event)
        self._progress(ctx, policy, "authorship_verified", "verified dependabot")

        if not verification.poll_checks_complete(ctx, event):
            remediation.request_rebase(ctx, event)
            self._progress(ctx, policy, "rebase_requested", "rebased PR")

            if not verification.poll_checks_complete(ctx, event):
                raise ChecksIncomplete("checks are not passing", reason_code="checks_incomplete")
        self._progress(ctx, policy, "checks_verified", "verified checks")

        if policy.autoapprove:
            created = remediation.approve(ctx, event)
            self._progress(
                ctx,
                policy,
                "approved",
                "approved PR",
                review_created=created,
            )

        if policy.automerge:
            remediation.merge(ctx, event)
            self._progress(ctx, policy, "merge_requested", "merged PR")

    def _progress(
        self,
        ctx: WorkflowContext,
        policy: Policy,
        stage: str,
        message: str,
        **fields: Any,
    ) -> None:
        self.trail.append({"stage": stage, "repository": policy.repository, **fields})
        ctx.log.info(message, stage=stage, **fields)

    def _finish(self, policy: Policy, outcome: WorkflowOutcome) -> None:
        self.outcomes.append(outcome)
        self.trail.append(
            {"stage": "finished", "repository": policy.repository, "outcome": outcome.kind}
        )


def run_workflow(
    event: PullRequestEvent,
    policy_table: PolicyTable,
    connector: GitHubConnector,
    settings: Settings,
    cancelled: threading.Event | None = None,
) -> WorkflowRun:
    workflow = WorkflowRun(connector=connector, settings=settings, cancelled=cancelled)
    workflow.run(event, policy_table)
    return workflow
