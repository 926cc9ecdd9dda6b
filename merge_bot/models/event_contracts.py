"""Pydantic contracts for inbound pull-request webhook events."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


TRIGGER_ACTIONS = frozenset({"opened", "synchronize", "reopened"})


class PullRequestEvent(BaseModel):
    """Immutable snapshot of the fields the workflow reads from a delivery."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    owner: str = Field(min_length=1)
    repository: str = Field(min_length=1)
    number: int = Field(ge=1)
    action: str = ""
    author: str = ""
    head_sha: str = Field(min_length=1)
    html_url: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repository}"

    @property
    def is_triggering(self) -> bool:
        return self.action in TRIGGER_ACTIONS

    def log_context(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "repository": self.repository,
            "pull_request_number": self.number,
            "action": self.action,
            "actor": self.author,
            "url": self.html_url,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PullRequestEvent":
        pull_request = payload.get("pull_request")
        if not isinstance(pull_request, dict):
            raise ValueError("pull request event has no pull request")
        repository = payload.get("repository") or {}
        owner = (repository.get("owner") or {}).get("login", "")
        return cls(
            owner=str(owner),
            repository=str(repository.get("name", "")),
            number=int(pull_request.get("number") or 0),
            action=str(payload.get("action", "")),
            author=str((pull_request.get("user") or {}).get("login", "")),
            head_sha=str((pull_request.get("head") or {}).get("sha", "")),
            html_url=str(pull_request.get("html_url", "")),
        )
