"""Per-run collaborators: gateway, settings, logger and cancellation flag."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from merge_bot.server.github_connector import GitHubAPIError, GitHubConnector
from merge_bot.shared.settings import Settings
from merge_bot.workflow.errors import RemoteCallFailed, WorkflowCancelled


@dataclass
class WorkflowContext:
    connector: GitHubConnector
    settings: Settings
    log: Any
    cancelled: threading.Event = field(default_factory=threading.Event)

    def ensure_active(self, operation: str = "") -> None:
        if self.cancelled.is_set():
            raise WorkflowCancelled(operation=operation)

    def sleep(self, seconds: float) -> None:
        """Block this run only; wakes early and raises when the run is cancelled."""
        if seconds > 0 and self.cancelled.wait(seconds):
            raise WorkflowCancelled("workflow cancelled while waiting")
        self.ensure_active()

    def call(self, operation: str, *args: Any) -> Any:
        self.ensure_active(operation)
        method = getattr(self.connector, operation)
        try:
            return method(*args)
        except GitHubAPIError as exc:
            raise RemoteCallFailed(
                f"{operation} failed: {exc}", reason_code=exc.reason_code, operation=operation
            ) from exc
