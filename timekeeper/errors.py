"""
Error taxonomy for the timesheet workflow.

Every error carries a machine-readable code, a message and the HTTP status the
API boundary renders it with.
"""
from typing import Any, Dict, Optional


class TimekeeperError(Exception):
    """Base exception for workflow errors."""

    code = "internal_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(TimekeeperError):
    """Bad input. details maps field name to problem."""

    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        if field and details is None:
            details = {"field": field}
        self.field = field
        super().__init__(message, details)


class Forbidden(TimekeeperError):
    code = "forbidden"
    status_code = 403


class NotFound(TimekeeperError):
    code = "not_found"
    status_code = 404


class TimesheetLocked(TimekeeperError):
    """Entry mutation attempted outside draft/rejected."""

    code = "timesheet_locked"
    status_code = 409


class InvalidTransition(TimekeeperError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, status: str, action: str):
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} a timesheet that is {status}",
            {"status": status, "action": action},
        )


class UpstreamUnavailable(TimekeeperError):
    """A collaborator failed or timed out. Safe to retry idempotent reads."""

    code = "upstream_unavailable"
    status_code = 503
    retryable = True
