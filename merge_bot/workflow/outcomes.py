"""Terminal workflow outcomes and how per-policy results combine."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from merge_bot.workflow.errors import WorkflowError


OutcomeKind = Literal[
    "success",
    "skipped_not_open",
    "failed_verification",
    "failed_checks",
    "remote_error",
]

OK_KINDS = {"success", "skipped_not_open"}


@dataclass(frozen=True)
class WorkflowOutcome:
    kind: OutcomeKind
    reason: str = ""
    reason_code: str = ""
    repository: str = ""

    @property
    def ok(self) -> bool:
        return self.kind in OK_KINDS

    @classmethod
    def success(cls, repository: str = "", reason: str = "") -> "WorkflowOutcome":
        return cls(kind="success", reason=reason, reason_code="success", repository=repository)

    @classmethod
    def from_error(cls, error: WorkflowError, repository: str = "") -> "WorkflowOutcome":
        return cls(
            kind=error.outcome_kind,
            reason=str(error),
            reason_code=error.reason_code,
            repository=repository,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "ok": self.ok,
            "reason": self.reason,
            "reason_code": self.reason_code,
            "repository": self.repository,
        }


def aggregate_outcomes(
    outcomes: Sequence[WorkflowOutcome], repository: str = ""
) -> WorkflowOutcome:
    """Collapse per-policy outcomes into the one reported for the delivery.

    A remote error wins over any other result, then the first verification or
    checks failure, then a closed PR. No outcomes at all means no policy matched.
    """

    if not outcomes:
        return WorkflowOutcome.success(repository=repository, reason="no matching policy")
    for outcome in outcomes:
        if outcome.kind == "remote_error":
            return outcome
    for outcome in outcomes:
        if not outcome.ok:
            return outcome
    for outcome in outcomes:
        if outcome.kind == "skipped_not_open":
            return outcome
    return outcomes[-1]
