"""Workflow failure taxonomy; each error maps onto one outcome kind."""

from __future__ import annotations


class WorkflowError(Exception):
    outcome_kind = "remote_error"

    def __init__(self, message: str, reason_code: str = "") -> None:
        super().__init__(message)
        self.reason_code = reason_code or self.outcome_kind


class NotOpen(WorkflowError):
    outcome_kind = "skipped_not_open"


class AuthorshipVerificationFailed(WorkflowError):
    outcome_kind = "failed_verification"


class ChecksIncomplete(WorkflowError):
    outcome_kind = "failed_checks"


class RemoteCallFailed(WorkflowError):
    outcome_kind = "remote_error"

    def __init__(self, message: str, reason_code: str = "", operation: str = "") -> None:
        super().__init__(message, reason_code=reason_code)
        self.operation = operation


class WorkflowCancelled(RemoteCallFailed):
    def __init__(self, message: str = "workflow cancelled", operation: str = "") -> None:
        super().__init__(message, reason_code="cancelled", operation=operation)
