"""merge-bot operator CLI."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import typer

from merge_bot.models.event_contracts import PullRequestEvent
from merge_bot.server.github_auth import load_github_auth_from_env
from merge_bot.server.github_connector import build_connector_from_env
from merge_bot.shared.logging import configure_logging
from merge_bot.shared.policies import load_policy_table
from merge_bot.shared.settings import get_settings
from merge_bot.workflow.orchestrator import run_workflow


app = typer.Typer(add_completion=False, help="merge-bot: dependabot autoapprove/automerge")


def _emit_errors(errors: list[dict[str, str]]) -> None:
    typer.echo(json.dumps({"errors": errors}, indent=2))


@app.command()
def policies(config: Path = typer.Option(None, "--config")) -> None:
    """Print the policy table as JSON."""
    path = config or get_settings().config_path
    try:
        table = load_policy_table(path)
    except (FileNotFoundError, ValueError) as exc:
        _emit_errors([{"code": "invalid_policy_file", "message": str(exc)}])
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(table.as_rows(), indent=2))


@app.command("check-config")
def check_config(config: Path = typer.Option(None, "--config")) -> None:
    """Validate the policy table, settings and required credentials."""
    errors: list[dict[str, str]] = []
    try:
        settings = get_settings()
    except ValueError as exc:
        _emit_errors([{"code": "invalid_settings", "message": str(exc)}])
        raise typer.Exit(code=1) from exc

    try:
        table = load_policy_table(config or settings.config_path)
    except (FileNotFoundError, ValueError) as exc:
        errors.append({"code": "invalid_policy_file", "message": str(exc)})
        table = None

    for name in load_github_auth_from_env().missing():
        errors.append({"code": "missing_credential", "message": name})

    if errors:
        _emit_errors(errors)
        raise typer.Exit(code=1)
    count = len(table) if table is not None else 0
    typer.echo(json.dumps({"status": "ok", "policies": count}, indent=2))


@app.command()
def replay(
    file: Path = typer.Option(..., "--file"),
    config: Path = typer.Option(None, "--config"),
    no_delay: bool = typer.Option(False, "--no-delay"),
) -> None:
    """Run the workflow for a saved pull_request payload against the live API."""
    settings = get_settings()
    if no_delay:
        settings = replace(settings, settle_delay_s=0.0)
    configure_logging(settings.log_level)

    try:
        event = PullRequestEvent.from_payload(json.loads(file.read_text()))
    except (json.JSONDecodeError, ValueError) as exc:
        _emit_errors([{"code": "invalid_payload", "message": str(exc)}])
        raise typer.Exit(code=2) from exc
    if not event.is_triggering:
        typer.echo(json.dumps({"status": "ignored", "reason": f"action {event.action}"}, indent=2))
        return

    table = load_policy_table(config or settings.config_path)
    connector = build_connector_from_env(timeout_s=settings.request_timeout_s)
    workflow = run_workflow(event, table, connector=connector, settings=settings)
    outcome = workflow.outcome
    typer.echo(json.dumps({"outcome": outcome.as_dict(), "trail": workflow.trail}, indent=2))
    if not outcome.ok:
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int = typer.Option(8080, "--port"),
) -> None:
    """Serve the webhook endpoint with uvicorn."""
    import uvicorn

    uvicorn.run("merge_bot.server.app:app", host=host, port=port)


if __name__ == "__main__":
    app()
