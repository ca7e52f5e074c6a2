from __future__ import annotations
from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Set


class TimesheetStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


# Domain records
class Timesheet(BaseModel):
    """One account's reported hours for one ISO week."""
    id: str
    accountId: str
    organizationId: str
    weekStart: date
    status: TimesheetStatus = TimesheetStatus.DRAFT
    submittedAt: Optional[datetime] = None
    approvedBy: Optional[str] = None
    approvedAt: Optional[datetime] = None
    approvalComments: Optional[str] = None
    rejectionComments: Optional[str] = None


class TimesheetEntry(BaseModel):
    id: str
    timesheetId: str
    projectId: str
    taskId: Optional[str] = None
    workDate: date
    hours: float
    billable: bool = True
    notes: Optional[str] = None
    title: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None


class UserProfile(BaseModel):
    accountId: str
    organizationId: Optional[str] = None
    supervisorId: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    title: Optional[str] = None
    department: Optional[str] = None


class Project(BaseModel):
    id: str
    organizationId: Optional[str] = None
    teamId: Optional[str] = None
    name: Optional[str] = None
    code: Optional[str] = None


class TeamMember(BaseModel):
    accountId: str
    roles: Set[str] = Field(default_factory=set)


class TimesheetFilters(BaseModel):
    """Filters for listing an organization's timesheets."""
    status: Optional[TimesheetStatus] = None
    statuses: Optional[List[TimesheetStatus]] = None
    weekStart: Optional[date] = None
    weekFrom: Optional[date] = None
    weekTo: Optional[date] = None
    accountIds: Optional[List[str]] = None
    limit: int = 100
    offset: int = 0


# Aggregates
class HoursSummary(BaseModel):
    totalHours: float = 0.0
    billableHours: float = 0.0
    nonBillableHours: float = 0.0
    entriesCount: int = 0


class GroupTotal(HoursSummary):
    key: str


# Request bodies
class EntryInput(BaseModel):
    projectId: str
    taskId: Optional[str] = None
    workDate: date
    hours: float
    billable: bool = True
    notes: Optional[str] = None
    title: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None


class SaveWeekRequest(BaseModel):
    accountId: str
    organizationId: str
    weekStart: date
    requesterId: Optional[str] = None  # defaults to accountId
    entries: List[EntryInput] = Field(default_factory=list)


class EntryUpdate(BaseModel):
    requesterId: str
    projectId: Optional[str] = None
    taskId: Optional[str] = None
    workDate: Optional[date] = None
    hours: Optional[float] = None
    billable: Optional[bool] = None
    notes: Optional[str] = None


class TransitionRequest(BaseModel):
    action: str
    requesterId: str
    comment: Optional[str] = None


class BulkActionRequest(BaseModel):
    timesheetIds: List[str]
    action: str
    requesterId: str
    comment: Optional[str] = None


# API Response Envelopes
class ApiError(BaseModel):
    """Structured error response."""
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ApiResponse(BaseModel):
    """Standard API response envelope."""
    ok: bool
    data: Optional[Any] = None
    error: Optional[ApiError] = None
    requestId: str = ""

    @classmethod
    def success(cls, data: Any = None, request_id: str = "") -> "ApiResponse":
        """Create a success response."""
        return cls(ok=True, data=data, requestId=request_id)

    @classmethod
    def failure(
        cls,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: str = "",
    ) -> "ApiResponse":
        """Create an error response."""
        return cls(
            ok=False,
            error=ApiError(code=code, message=message, details=details),
            requestId=request_id,
        )
