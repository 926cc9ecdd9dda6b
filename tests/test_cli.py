import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import merge_bot.cli as cli_module
from merge_bot.cli import app
from merge_bot.server.github_connector_inmemory import InMemoryGitHubConnector

CREDENTIAL_VARS = (
    "MERGE_BOT_GITHUB_TOKEN",
    "USER_TOKEN",
    "GITHUB_TOKEN",
    "MERGE_BOT_WEBHOOK_SECRET",
    "WEBHOOK_SECRET",
)

PAYLOAD = {
    "action": "opened",
    "repository": {"name": "api", "owner": {"login": "acme"}},
    "pull_request": {
        "number": 7,
        "user": {"login": "dependabot[bot]"},
        "head": {"sha": "abc123"},
        "html_url": "https://github.com/acme/api/pull/7",
    },
}


@pytest.fixture(autouse=True)
def _workdir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    for name in CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MERGE_BOT_POLL_INTERVAL_S", "0")
    monkeypatch.setattr(cli_module, "configure_logging", lambda level: None)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_policies_prints_table() -> None:
    Path("config.yaml").write_text("- repository: api\n  automerge: true\n")

    result = CliRunner().invoke(app, ["policies", "--config", "config.yaml"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [
        {"repository": "api", "autoapprove": False, "automerge": True}
    ]


def test_policies_reports_invalid_file() -> None:
    Path("config.yaml").write_text("repository: api\n")

    result = CliRunner().invoke(app, ["policies", "--config", "config.yaml"])

    assert result.exit_code == 1
    assert json.loads(result.stdout)["errors"][0]["code"] == "invalid_policy_file"


def test_check_config_lists_missing_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    runner = CliRunner()
    Path("config.yaml").write_text("- repository: api\n")

    result = runner.invoke(app, ["check-config", "--config", "config.yaml"])

    assert result.exit_code == 1
    errors = json.loads(result.stdout)["errors"]
    assert [error["message"] for error in errors] == [
        "MERGE_BOT_GITHUB_TOKEN",
        "MERGE_BOT_WEBHOOK_SECRET",
    ]

    monkeypatch.setenv("USER_TOKEN", "token")
    monkeypatch.setenv("WEBHOOK_SECRET", "secret")
    result = runner.invoke(app, ["check-config", "--config", "config.yaml"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"status": "ok", "policies": 1}


def test_replay_runs_workflow_for_saved_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    connector = InMemoryGitHubConnector()
    connector.add_pull_request("acme/api", 7)
    connector.add_commit("acme/api", 7)
    connector.script_check_runs("acme/api", "abc123", [{"status": "completed"}])
    monkeypatch.setattr(cli_module, "build_connector_from_env", lambda **_: connector)
    Path("config.yaml").write_text("- repository: api\n  autoapprove: true\n")
    Path("event.json").write_text(json.dumps(PAYLOAD))

    result = CliRunner().invoke(
        app, ["replay", "--file", "event.json", "--config", "config.yaml", "--no-delay"]
    )

    assert result.exit_code == 0, result.stdout
    report = json.loads(result.stdout[result.stdout.index('{\n  "outcome"') :])
    assert report["outcome"]["kind"] == "success"
    assert len(connector.calls_for("create_review")) == 1


def test_replay_ignores_non_lifecycle_action(monkeypatch: pytest.MonkeyPatch) -> None:
    connector = InMemoryGitHubConnector()
    monkeypatch.setattr(cli_module, "build_connector_from_env", lambda **_: connector)
    Path("event.json").write_text(json.dumps({**PAYLOAD, "action": "closed"}))

    result = CliRunner().invoke(app, ["replay", "--file", "event.json", "--no-delay"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"status": "ignored", "reason": "action closed"}
    assert connector.calls == []


def test_replay_rejects_payload_without_pull_request() -> None:
    Path("event.json").write_text(json.dumps({"action": "opened"}))

    result = CliRunner().invoke(app, ["replay", "--file", "event.json"])

    assert result.exit_code == 2
    assert "invalid_payload" in result.stdout
