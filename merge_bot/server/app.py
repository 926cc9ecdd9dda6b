"""Webhook application surface with a minimal ASGI HTTP layer."""

from __future__ import annotations

import argparse
import asyncio
import json
import threading
from typing import Any
from urllib.parse import parse_qs

from merge_bot.models.event_contracts import TRIGGER_ACTIONS, PullRequestEvent
from merge_bot.models.policy_contracts import PolicyTable
from merge_bot.server.github_auth import (
    GitHubAuth,
    load_github_auth_from_env,
    require_server_credentials,
    verify_webhook_signature,
)
from merge_bot.server.github_connector import GitHubConnector, build_connector_from_env
from merge_bot.shared.logging import configure_logging, get_logger
from merge_bot.shared.policies import load_policy_table
from merge_bot.shared.settings import Settings, get_settings
from merge_bot.workflow.orchestrator import WorkflowRun


PULL_REQUEST_EVENT = "pull_request"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

logger = get_logger("merge_bot.server")


class ServerApp:
    """Wires settings, policy table and connector; maps deliveries to responses."""

    def __init__(
        self,
        settings: Settings | None = None,
        policy_table: PolicyTable | None = None,
        connector: GitHubConnector | None = None,
        auth: GitHubAuth | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.auth = auth or load_github_auth_from_env()
        self.policy_table = (
            policy_table
            if policy_table is not None
            else load_policy_table(self.settings.config_path)
        )
        self.connector = connector or build_connector_from_env(
            auth=self.auth, timeout_s=self.settings.request_timeout_s
        )

    def verify_signature(self, body: bytes, headers: dict[str, str]) -> bool:
        return verify_webhook_signature(self.auth.webhook_secret, body, headers)

    def handle_delivery(
        self,
        event_type: str,
        payload: dict[str, Any],
        cancelled: threading.Event | None = None,
    ) -> tuple[int, dict[str, Any]]:
        if not event_type:
            logger.error("failed to parse webhook", error="missing event type")
            return 400, {"error": "invalid_event_type"}
        if event_type != PULL_REQUEST_EVENT:
            return 200, {"status": "ignored", "reason": f"event {event_type}"}

        action = payload.get("action")
        if not isinstance(action, str) or action not in TRIGGER_ACTIONS:
            return 200, {"status": "ignored", "reason": f"action {action}"}

        try:
            event = PullRequestEvent.from_payload(payload)
        except ValueError as exc:
            logger.error("failed to parse webhook", error=str(exc))
            return 400, {"error": "invalid_pull_request_event"}

        workflow = WorkflowRun(
            connector=self.connector,
            settings=self.settings,
            cancelled=cancelled,
            log=logger,
        )
        outcome = workflow.run(event, self.policy_table)
        result = {"outcome": outcome.as_dict(), "trail": workflow.trail}
        if outcome.ok:
            return 200, {"status": "processed", **result}
        return 500, {"error": "failed to process pull request event", **result}


class ASGIServer:
    """Minimal ASGI adapter exposing the health check and webhook endpoint."""

    def __init__(self, service: ServerApp | None = None) -> None:
        self._service = service

    @property
    def service(self) -> ServerApp:
        if self._service is None:
            self._service = create_app()
        return self._service

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope.get("type") == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope.get("type") != "http":
            return

        method = scope.get("method", "GET")
        path = scope.get("path", "")

        try:
            if method == "GET" and path == "/health":
                await self._send_json(send, 200, {"status": "ok"})
                return

            if method == "POST" and path == "/event":
                await self._handle_event(scope, receive, send)
                return

            await self._send_json(send, 404, {"error": "not_found"})
        except Exception as exc:  # pragma: no cover
            logger.exception("unhandled request failure", path=path)
            await self._send_json(send, 500, {"error": str(exc)})

    async def _handle_event(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        body = await self._read_body(receive)
        headers = self._headers(scope)

        if not self.service.verify_signature(body, headers):
            logger.error("failed to validate payload", error="signature mismatch")
            await self._send_json(send, 400, {"error": "invalid_payload"})
            return

        payload = self._parse_payload(body, headers.get("content-type", ""))
        if payload is None:
            logger.error("failed to parse webhook", error="invalid json")
            await self._send_json(send, 400, {"error": "invalid_json"})
            return

        cancelled = threading.Event()
        watcher = asyncio.create_task(self._watch_disconnect(receive, cancelled))
        try:
            status, result = await asyncio.to_thread(
                self.service.handle_delivery,
                headers.get("x-github-event", ""),
                payload,
                cancelled,
            )
        finally:
            watcher.cancel()

        if cancelled.is_set():
            return
        await self._send_json(send, status, result)

    async def _watch_disconnect(self, receive: Any, cancelled: threading.Event) -> None:
        while True:
            message = await receive()
            if message.get("type") == "http.disconnect":
                cancelled.set()
                return

    async def _lifespan(self, receive: Any, send: Any) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _read_body(self, receive: Any) -> bytes:
        chunks: list[bytes] = []
        while True:
            message = await receive()
            if message["type"] != "http.request":
                continue
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break
        return b"".join(chunks)

    def _headers(self, scope: dict[str, Any]) -> dict[str, str]:
        return {
            name.decode("latin-1").lower(): value.decode("latin-1")
            for name, value in scope.get("headers", [])
        }

    def _parse_payload(self, body: bytes, content_type: str) -> dict[str, Any] | None:
        """Decode a JSON delivery or a form delivery carrying JSON in its `payload` field."""
        try:
            text = body.decode("utf-8")
            if content_type.split(";")[0].strip().lower() == FORM_CONTENT_TYPE:
                text = parse_qs(text).get("payload", [""])[0]
            parsed = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        if not isinstance(parsed, dict):
            return None
        return parsed

    async def _send_json(self, send: Any, status: int, payload: dict[str, Any]) -> None:
        body = json.dumps(payload).encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": [(b"content-type", b"application/json")],
            }
        )
        await send({"type": "http.response.body", "body": body})


def create_app(settings: Settings | None = None) -> ServerApp:
    resolved = settings or get_settings()
    configure_logging(resolved.log_level)
    auth = require_server_credentials(load_github_auth_from_env())
    return ServerApp(settings=resolved, auth=auth)


app = ASGIServer()


def main() -> int:
    parser = argparse.ArgumentParser(description="merge-bot ASGI server entrypoint")
    parser.add_argument(
        "--print-startup",
        action="store_true",
        help="print the supported uvicorn startup command and exit",
    )
    args = parser.parse_args()

    if args.print_startup:
        print("uvicorn merge_bot.server.app:app --host 0.0.0.0 --port 8080")
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
