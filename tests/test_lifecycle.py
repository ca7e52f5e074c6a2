"""
Tests for the timesheet state machine.
"""
from datetime import date, datetime, timezone

import pytest

from timekeeper import lifecycle
from timekeeper.errors import InvalidTransition, TimesheetLocked, ValidationError
from timekeeper.models import Timesheet, TimesheetStatus

NOW = datetime(2024, 1, 8, 9, 30, tzinfo=timezone.utc)


def make(status: TimesheetStatus, **fields) -> Timesheet:
    return Timesheet(
        id="ts1",
        accountId="staff1",
        organizationId="org1",
        weekStart=date(2024, 1, 1),
        status=status,
        **fields,
    )


@pytest.mark.parametrize(
    "status,expected",
    [
        (TimesheetStatus.DRAFT, ["submit"]),
        (TimesheetStatus.SUBMITTED, ["unsubmit", "approve", "reject"]),
        (TimesheetStatus.APPROVED, []),
        (TimesheetStatus.REJECTED, ["submit"]),
    ],
)
def test_legal_actions(status, expected):
    assert lifecycle.legal_actions(status) == expected


def test_submit_from_draft():
    fields = lifecycle.submit(make(TimesheetStatus.DRAFT), now=NOW)
    assert fields["status"] == TimesheetStatus.SUBMITTED
    assert fields["submittedAt"] == NOW


def test_resubmit_clears_previous_decision():
    ts = make(
        TimesheetStatus.REJECTED,
        approvedBy="mgr1",
        approvedAt=NOW,
        rejectionComments="Missing Friday",
    )
    fields = lifecycle.submit(ts, now=NOW)
    assert fields["status"] == TimesheetStatus.SUBMITTED
    assert fields["rejectionComments"] is None
    assert fields["approvalComments"] is None
    assert fields["approvedBy"] is None
    assert fields["approvedAt"] is None


def test_unsubmit_returns_to_draft():
    fields = lifecycle.unsubmit(make(TimesheetStatus.SUBMITTED, submittedAt=NOW))
    assert fields == {"status": TimesheetStatus.DRAFT, "submittedAt": None}


def test_approve_records_approver_and_comment():
    fields = lifecycle.approve(make(TimesheetStatus.SUBMITTED), "mgr1", "  Looks good ", now=NOW)
    assert fields["status"] == TimesheetStatus.APPROVED
    assert fields["approvedBy"] == "mgr1"
    assert fields["approvedAt"] == NOW
    assert fields["approvalComments"] == "Looks good"
    assert fields["rejectionComments"] is None


def test_reject_records_comment():
    fields = lifecycle.reject(make(TimesheetStatus.SUBMITTED), "mgr1", "Missing Friday", now=NOW)
    assert fields["status"] == TimesheetStatus.REJECTED
    assert fields["rejectionComments"] == "Missing Friday"
    assert fields["approvalComments"] is None


@pytest.mark.parametrize("comment", [None, "", "   "])
@pytest.mark.parametrize("action", ["approve", "reject"])
def test_decision_requires_comment(action, comment):
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.transition(make(TimesheetStatus.SUBMITTED), action, actor_id="mgr1", comment=comment)
    assert exc_info.value.details["field"] in ("approvalComments", "rejectionComments")


def test_decision_requires_approver():
    with pytest.raises(ValidationError):
        lifecycle.approve(make(TimesheetStatus.SUBMITTED), None, "ok")


@pytest.mark.parametrize(
    "status,action",
    [
        (TimesheetStatus.DRAFT, "approve"),
        (TimesheetStatus.DRAFT, "reject"),
        (TimesheetStatus.DRAFT, "unsubmit"),
        (TimesheetStatus.SUBMITTED, "submit"),
        (TimesheetStatus.APPROVED, "submit"),
        (TimesheetStatus.APPROVED, "reject"),
        (TimesheetStatus.APPROVED, "unsubmit"),
        (TimesheetStatus.REJECTED, "approve"),
        (TimesheetStatus.REJECTED, "unsubmit"),
    ],
)
def test_illegal_transitions(status, action):
    with pytest.raises(InvalidTransition) as exc_info:
        lifecycle.transition(make(status), action, actor_id="mgr1", comment="note")
    assert exc_info.value.details == {"status": status.value, "action": action}


def test_unknown_action():
    with pytest.raises(ValidationError):
        lifecycle.transition(make(TimesheetStatus.DRAFT), "archive")


@pytest.mark.parametrize("status", [TimesheetStatus.DRAFT, TimesheetStatus.REJECTED])
def test_editable_statuses(status):
    lifecycle.ensure_editable(make(status))


@pytest.mark.parametrize("status", [TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED])
def test_locked_statuses(status):
    with pytest.raises(TimesheetLocked):
        lifecycle.ensure_editable(make(status))


@pytest.mark.parametrize("hours", [0.25, 8, 24])
def test_valid_hours(hours):
    assert lifecycle.validate_hours(hours) == float(hours)


@pytest.mark.parametrize("hours", [0, -1, 24.5, 25, "8", None, True])
def test_invalid_hours(hours):
    with pytest.raises(ValidationError):
        lifecycle.validate_hours(hours)
