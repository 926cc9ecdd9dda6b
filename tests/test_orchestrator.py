from __future__ import annotations

import threading
from pathlib import Path

import structlog
from structlog.testing import capture_logs

from merge_bot.models.event_contracts import PullRequestEvent
from merge_bot.models.policy_contracts import Policy, PolicyTable
from merge_bot.server.github_connector_inmemory import InMemoryGitHubConnector
from merge_bot.shared.settings import Settings
from merge_bot.workflow.orchestrator import WorkflowRun, run_workflow
from merge_bot.workflow.outcomes import WorkflowOutcome, aggregate_outcomes

REPO = "acme/x"
SHA = "abc123"
PENDING = [{"status": "in_progress"}]
DONE = [{"status": "completed", "conclusion": "success"}]


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {"settle_delay_s": 0.0, "poll_interval_s": 0.0}
    values.update(overrides)
    return Settings(config_path=Path("config.yaml"), **values)


def _event(author: str = "dependabot[bot]", repository: str = "x") -> PullRequestEvent:
    return PullRequestEvent(
        owner="acme",
        repository=repository,
        number=7,
        action="synchronize",
        author=author,
        head_sha=SHA,
        html_url=f"https://github.com/acme/{repository}/pull/7",
    )


def _table(*policies: Policy) -> PolicyTable:
    return PolicyTable.from_entries(policies)


def _connector(*snapshots: list[dict[str, object]], state: str = "open") -> InMemoryGitHubConnector:
    connector = InMemoryGitHubConnector()
    connector.add_pull_request(REPO, 7, state=state, head_sha=SHA)
    connector.add_commit(REPO, 7)
    connector.script_check_runs(REPO, SHA, *(snapshots or (DONE,)))
    return connector


def _run(
    connector: InMemoryGitHubConnector, table: PolicyTable, **overrides: object
) -> WorkflowRun:
    return run_workflow(_event(), table, connector=connector, settings=_settings(**overrides))


def test_autoapprove_only_scenario_reviews_once_and_never_merges() -> None:
    connector = _connector(DONE)
    workflow = _run(connector, _table(Policy(repository="x", autoapprove=True)))

    assert workflow.outcome.kind == "success"
    assert len(connector.calls_for("create_review")) == 1
    assert connector.calls_for("create_issue_comment") == []
    assert len(connector.calls_for("list_check_runs_for_ref")) == 1


def test_automerge_does_not_imply_autoapprove() -> None:
    connector = _connector(DONE)
    workflow = _run(connector, _table(Policy(repository="x", automerge=True)))

    assert workflow.outcome.ok
    assert connector.calls_for("list_reviews") == []
    assert connector.calls_for("create_review") == []
    assert [c["body"] for c in connector.comments[(REPO, 7)]] == ["@dependabot merge"]


def test_unmatched_repository_issues_no_remote_calls() -> None:
    connector = _connector(DONE)
    workflow = _run(connector, _table(Policy(repository="other", autoapprove=True, automerge=True)))

    assert workflow.outcome.kind == "success"
    assert workflow.outcome.reason == "no matching policy"
    assert connector.calls == []
    assert workflow.trail == []


def test_closed_pr_is_skipped_without_remediation() -> None:
    connector = _connector(DONE, state="closed")
    workflow = _run(
        connector,
        _table(
            Policy(repository="x", autoapprove=True, automerge=True),
            Policy(repository="x", autoapprove=True),
        ),
    )

    assert workflow.outcome.kind == "skipped_not_open"
    assert workflow.outcome.ok
    assert connector.mutating_calls() == []
    assert len(connector.calls_for("get_pull_request")) == 1


def test_foreign_commit_fails_verification_before_any_remediation() -> None:
    connector = _connector(DONE)
    connector.add_commit(REPO, 7, author="mallory", verified=True)
    workflow = _run(connector, _table(Policy(repository="x", autoapprove=True, automerge=True)))

    assert workflow.outcome.kind == "failed_verification"
    assert not workflow.outcome.ok
    assert connector.mutating_calls() == []
    assert connector.calls_for("list_check_runs_for_ref") == []


def test_incomplete_checks_trigger_one_rebase_then_proceed() -> None:
    pending_poll = [PENDING] * 12
    connector = _connector(*pending_poll, DONE)
    workflow = _run(connector, _table(Policy(repository="x", autoapprove=True, automerge=True)))

    assert workflow.outcome.kind == "success"
    bodies = [c["body"] for c in connector.comments[(REPO, 7)]]
    assert bodies == ["@dependabot rebase", "@dependabot merge"]
    assert len(connector.calls_for("list_check_runs_for_ref")) == 13
    assert len(connector.calls_for("create_review")) == 1
    stages = [entry["stage"] for entry in workflow.trail]
    assert stages.index("rebase_requested") < stages.index("checks_verified")


def test_checks_never_complete_fails_without_approve_or_merge() -> None:
    connector = _connector(PENDING)
    workflow = _run(connector, _table(Policy(repository="x", autoapprove=True, automerge=True)))

    assert workflow.outcome.kind == "failed_checks"
    assert len(connector.calls_for("list_check_runs_for_ref")) == 24
    assert [c["body"] for c in connector.comments[(REPO, 7)]] == ["@dependabot rebase"]
    assert connector.calls_for("create_review") == []


def test_strict_mode_treats_failed_conclusions_as_not_ready() -> None:
    failed = [{"status": "completed", "conclusion": "failure"}]
    connector = _connector(failed)
    workflow = _run(
        connector,
        _table(Policy(repository="x", automerge=True)),
        require_passing_conclusion=True,
    )

    assert workflow.outcome.kind == "failed_checks"
    assert len(connector.calls_for("list_check_runs_for_ref")) == 2
    assert [c["body"] for c in connector.comments[(REPO, 7)]] == ["@dependabot rebase"]


def test_default_mode_merges_even_when_checks_failed() -> None:
    failed = [{"status": "completed", "conclusion": "failure"}]
    connector = _connector(failed)
    workflow = _run(connector, _table(Policy(repository="x", automerge=True)))

    assert workflow.outcome.kind == "success"
    assert [c["body"] for c in connector.comments[(REPO, 7)]] == ["@dependabot merge"]


def test_remote_error_aborts_remaining_steps_and_policies() -> None:
    connector = _connector(DONE)
    connector.fail_on("list_reviews")
    workflow = _run(
        connector,
        _table(
            Policy(repository="x", autoapprove=True, automerge=True),
            Policy(repository="x", automerge=True),
        ),
    )

    assert workflow.outcome.kind == "remote_error"
    assert workflow.outcome.reason_code == "injected_failure"
    assert connector.mutating_calls() == []
    assert len(workflow.outcomes) == 1


def test_verification_failure_does_not_stop_other_matching_policies() -> None:
    connector = _connector(PENDING, PENDING, DONE)
    workflow = _run(
        connector,
        _table(
            Policy(repository="x", autoapprove=True),
            Policy(repository="x", automerge=True),
        ),
        poll_max_attempts=1,
    )

    assert [outcome.kind for outcome in workflow.outcomes] == ["failed_checks", "success"]
    assert workflow.outcome.kind == "failed_checks"
    bodies = [c["body"] for c in connector.comments[(REPO, 7)]]
    assert bodies == ["@dependabot rebase", "@dependabot merge"]


def test_duplicate_policies_are_each_applied_in_order() -> None:
    connector = _connector(DONE)
    workflow = _run(
        connector,
        _table(
            Policy(repository="x", autoapprove=True),
            Policy(repository="y", automerge=True),
            Policy(repository="x", autoapprove=True),
        ),
    )

    assert [outcome.kind for outcome in workflow.outcomes] == ["success", "success"]
    assert len(connector.calls_for("get_pull_request")) == 2
    assert len(connector.calls_for("create_review")) == 1
    assert len(connector.calls_for("list_reviews")) == 2


def test_non_bot_author_skips_commit_inspection() -> None:
    connector = _connector(DONE)
    workflow = run_workflow(
        _event(author="octocat"),
        _table(Policy(repository="x", autoapprove=True)),
        connector=connector,
        settings=_settings(),
    )

    assert workflow.outcome.ok
    assert connector.calls_for("list_commits") == []


def test_cancelled_run_reports_remote_error_and_makes_no_calls() -> None:
    connector = _connector(DONE)
    cancelled = threading.Event()
    cancelled.set()
    workflow = run_workflow(
        _event(),
        _table(Policy(repository="x", autoapprove=True, automerge=True)),
        connector=connector,
        settings=_settings(settle_delay_s=30.0),
        cancelled=cancelled,
    )

    assert workflow.outcome.kind == "remote_error"
    assert workflow.outcome.reason_code == "cancelled"
    assert connector.calls == []


def test_progress_events_are_logged_per_stage() -> None:
    connector = _connector(DONE)
    workflow = WorkflowRun(connector=connector, settings=_settings(), log=structlog.get_logger())

    with capture_logs() as logs:
        workflow.run(_event(), _table(Policy(repository="x", autoapprove=True, automerge=True)))

    events = [entry["event"] for entry in logs]
    assert events == [
        "running action",
        "verified pull request is open",
        "verified dependabot",
        "verified checks",
        "approved PR",
        "merged PR",
    ]
    assert logs[0]["pull_request"]["pull_request_number"] == 7


def test_aggregate_prefers_remote_errors_then_failures() -> None:
    success = WorkflowOutcome.success(repository="x")
    failed = WorkflowOutcome(kind="failed_checks", reason="checks are not passing")
    remote = WorkflowOutcome(kind="remote_error", reason="boom")

    assert aggregate_outcomes([success, failed, remote]).kind == "remote_error"
    assert aggregate_outcomes([success, failed]).kind == "failed_checks"
    assert aggregate_outcomes([success]).kind == "success"
    assert aggregate_outcomes([]).reason == "no matching policy"
