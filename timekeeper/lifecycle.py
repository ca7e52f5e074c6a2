"""
Timesheet state machine.

    draft ──submit──> submitted ──approve──> approved
      ^                 │  │
      └────unsubmit─────┘  └──reject──> rejected ──submit──> submitted

Transition functions are pure: they check the current status and inputs and
return the fields to write. Persisting them is the caller's job.
"""
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Optional

from timekeeper.errors import InvalidTransition, TimesheetLocked, ValidationError
from timekeeper.models import Timesheet, TimesheetStatus
from timekeeper.utils.dates import now_utc

SUBMIT = "submit"
UNSUBMIT = "unsubmit"
APPROVE = "approve"
REJECT = "reject"

ACTIONS = (SUBMIT, UNSUBMIT, APPROVE, REJECT)

# action -> (allowed source states, target state)
TRANSITIONS = {
    SUBMIT: ({TimesheetStatus.DRAFT, TimesheetStatus.REJECTED}, TimesheetStatus.SUBMITTED),
    UNSUBMIT: ({TimesheetStatus.SUBMITTED}, TimesheetStatus.DRAFT),
    APPROVE: ({TimesheetStatus.SUBMITTED}, TimesheetStatus.APPROVED),
    REJECT: ({TimesheetStatus.SUBMITTED}, TimesheetStatus.REJECTED),
}

EDITABLE_STATUSES = frozenset({TimesheetStatus.DRAFT, TimesheetStatus.REJECTED})

MAX_HOURS_PER_ENTRY = 24.0


def legal_actions(status: TimesheetStatus) -> list[str]:
    return [action for action, (sources, _) in TRANSITIONS.items() if status in sources]


def _check(timesheet: Timesheet, action: str) -> TimesheetStatus:
    if action not in TRANSITIONS:
        raise ValidationError(f"Unknown action: {action}", field="action")
    sources, target = TRANSITIONS[action]
    status = TimesheetStatus(timesheet.status)
    if status not in sources:
        raise InvalidTransition(status.value, action)
    return target


def _require_comment(comment: Optional[str], field: str) -> str:
    if comment is None or not comment.strip():
        raise ValidationError(f"{field} is required", field=field)
    return comment.strip()


def _require_approver(approver_id: Optional[str]) -> str:
    if not approver_id:
        raise ValidationError("approverId is required", field="approverId")
    return approver_id


def submit(timesheet: Timesheet, now: Optional[datetime] = None) -> Dict[str, Any]:
    """A fresh submission never carries feedback from an earlier decision."""
    target = _check(timesheet, SUBMIT)
    return {
        "status": target,
        "submittedAt": now or now_utc(),
        "approvalComments": None,
        "rejectionComments": None,
        "approvedBy": None,
        "approvedAt": None,
    }


def unsubmit(timesheet: Timesheet) -> Dict[str, Any]:
    target = _check(timesheet, UNSUBMIT)
    return {"status": target, "submittedAt": None}


def approve(
    timesheet: Timesheet,
    approver_id: Optional[str],
    comment: Optional[str],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    target = _check(timesheet, APPROVE)
    comment = _require_comment(comment, "approvalComments")
    approver_id = _require_approver(approver_id)
    return {
        "status": target,
        "approvedBy": approver_id,
        "approvedAt": now or now_utc(),
        "approvalComments": comment,
        "rejectionComments": None,
    }


def reject(
    timesheet: Timesheet,
    approver_id: Optional[str],
    comment: Optional[str],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    target = _check(timesheet, REJECT)
    comment = _require_comment(comment, "rejectionComments")
    approver_id = _require_approver(approver_id)
    return {
        "status": target,
        "approvedBy": approver_id,
        "approvedAt": now or now_utc(),
        "rejectionComments": comment,
        "approvalComments": None,
    }


def transition(
    timesheet: Timesheet,
    action: str,
    actor_id: Optional[str] = None,
    comment: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Dispatch an action name to its transition function."""
    if action == SUBMIT:
        return submit(timesheet, now=now)
    if action == UNSUBMIT:
        return unsubmit(timesheet)
    if action == APPROVE:
        return approve(timesheet, actor_id, comment, now=now)
    if action == REJECT:
        return reject(timesheet, actor_id, comment, now=now)
    raise ValidationError(f"Unknown action: {action}", field="action")


def ensure_editable(timesheet: Timesheet) -> None:
    """Entries may only change while the parent timesheet is draft or rejected."""
    if TimesheetStatus(timesheet.status) not in EDITABLE_STATUSES:
        raise TimesheetLocked(
            f"Timesheet is {TimesheetStatus(timesheet.status).value}; entries are locked",
            {"timesheetId": timesheet.id, "status": TimesheetStatus(timesheet.status).value},
        )


def validate_hours(hours: Any) -> float:
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        raise ValidationError("hours must be a number", field="hours")
    if not 0 < hours <= MAX_HOURS_PER_ENTRY:
        raise ValidationError(
            f"Hours must be greater than 0 and at most {MAX_HOURS_PER_ENTRY:g}",
            details={"field": "hours", "value": hours},
        )
    return float(hours)
