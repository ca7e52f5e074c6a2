from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request

from timekeeper.deps import get_service
from timekeeper.models import (
    ApiResponse,
    BulkActionRequest,
    EntryUpdate,
    SaveWeekRequest,
    TimesheetStatus,
    TransitionRequest,
)
from timekeeper.service import TimesheetService
from timekeeper.utils.ids import request_id as get_request_id

router = APIRouter(prefix="/timesheets", tags=["timesheets"])


def _rid(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id(request.headers.get("x-request-id"))


@router.get("")
async def get_week(
    request: Request,
    account_id: str = Query(..., alias="accountId"),
    week_start: date = Query(..., alias="weekStart"),
    requester_id: Optional[str] = Query(None, alias="requesterId"),
    svc: TimesheetService = Depends(get_service),
):
    """Timesheet, entries and totals for one account's week."""
    data = await svc.get_week(account_id, week_start, requester_id or account_id)
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.post("")
async def save_week(request: Request, body: SaveWeekRequest, svc: TimesheetService = Depends(get_service)):
    data = await svc.save_week(body)
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.get("/approvals")
async def list_approvals(
    request: Request,
    requester_id: str = Query(..., alias="requesterId"),
    organization_id: str = Query(..., alias="organizationId"),
    status: Optional[TimesheetStatus] = Query(None),
    week_start: Optional[date] = Query(None, alias="weekStart"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    svc: TimesheetService = Depends(get_service),
):
    """Timesheets the requester may review, newest submission first."""
    data = await svc.list_approvals(
        requester_id,
        organization_id,
        status=status,
        week=week_start,
        page=page,
        limit=limit,
    )
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.post("/bulk")
async def bulk_decide(request: Request, body: BulkActionRequest, svc: TimesheetService = Depends(get_service)):
    data = await svc.bulk_decide(body)
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.get("/dashboard")
async def dashboard(
    request: Request,
    requester_id: str = Query(..., alias="requesterId"),
    organization_id: str = Query(..., alias="organizationId"),
    svc: TimesheetService = Depends(get_service),
):
    data = await svc.dashboard(requester_id, organization_id)
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.get("/reports")
async def reports(
    request: Request,
    requester_id: str = Query(..., alias="requesterId"),
    organization_id: str = Query(..., alias="organizationId"),
    report_type: Literal["summary", "by-project", "by-user", "trends"] = Query("summary", alias="type"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    project_id: Optional[str] = Query(None, alias="projectId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    svc: TimesheetService = Depends(get_service),
):
    data = await svc.report(
        requester_id,
        organization_id,
        report_type=report_type,
        start=start_date,
        end=end_date,
        project_id=project_id,
        user_id=user_id,
    )
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.get("/team")
async def team_view(
    request: Request,
    requester_id: str = Query(..., alias="requesterId"),
    organization_id: str = Query(..., alias="organizationId"),
    view_as: Optional[Literal["admin", "finance", "supervisor"]] = Query(None, alias="viewAs"),
    status: Optional[str] = Query(None),
    week_start: Optional[date] = Query(None, alias="weekStart"),
    department: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    svc: TimesheetService = Depends(get_service),
):
    """Weekly roster of staff timesheets for admins, finance and supervisors."""
    data = await svc.team_view(
        requester_id,
        organization_id,
        view_as=view_as,
        status=status,
        week=week_start,
        department=department,
        search=search,
    )
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.get("/staff/{account_id}")
async def staff_timesheets(
    request: Request,
    account_id: str,
    requester_id: str = Query(..., alias="requesterId"),
    organization_id: str = Query(..., alias="organizationId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    status: Optional[TimesheetStatus] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    svc: TimesheetService = Depends(get_service),
):
    """One staff member's timesheet history with statistics."""
    data = await svc.staff_timesheets(
        account_id,
        requester_id,
        organization_id,
        start=start_date,
        end=end_date,
        status=status,
        limit=limit,
    )
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.get("/entries/{entry_id}")
async def get_entry(
    request: Request,
    entry_id: str,
    requester_id: str = Query(..., alias="requesterId"),
    svc: TimesheetService = Depends(get_service),
):
    data = await svc.get_entry(entry_id, requester_id)
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.put("/entries/{entry_id}")
async def update_entry(
    request: Request,
    entry_id: str,
    body: EntryUpdate,
    svc: TimesheetService = Depends(get_service),
):
    data = await svc.update_entry(entry_id, body)
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.delete("/entries/{entry_id}")
async def delete_entry(
    request: Request,
    entry_id: str,
    requester_id: str = Query(..., alias="requesterId"),
    svc: TimesheetService = Depends(get_service),
):
    data = await svc.delete_entry(entry_id, requester_id)
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.get("/{timesheet_id}/details")
async def details(
    request: Request,
    timesheet_id: str,
    requester_id: str = Query(..., alias="requesterId"),
    svc: TimesheetService = Depends(get_service),
):
    data = await svc.details(timesheet_id, requester_id)
    return ApiResponse.success(data=data, request_id=_rid(request))


@router.patch("/{timesheet_id}")
async def transition(
    request: Request,
    timesheet_id: str,
    body: TransitionRequest,
    svc: TimesheetService = Depends(get_service),
):
    """Apply submit, unsubmit, approve or reject."""
    data = await svc.transition(timesheet_id, body.action, body.requesterId, body.comment)
    return ApiResponse.success(data=data, request_id=_rid(request))
