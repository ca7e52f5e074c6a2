"""
Timesheet workflow operations on top of the backend collaborators.

Every operation takes the requester's account id explicitly; role labels are
fetched per call and never cached.
"""
from __future__ import annotations
import asyncio
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from timekeeper import aggregation, lifecycle
from timekeeper.access import (
    Access,
    AccessClass,
    AccessResolver,
    ManagerIndex,
    attempt,
    can_approve,
    can_view,
    in_approval_scope,
    staff_access,
)
from timekeeper.config import settings
from timekeeper.errors import Forbidden, NotFound, TimekeeperError, ValidationError
from timekeeper.integrations.base import Backend
from timekeeper.models import (
    BulkActionRequest,
    EntryUpdate,
    SaveWeekRequest,
    Timesheet,
    TimesheetEntry,
    TimesheetFilters,
    TimesheetStatus,
    UserProfile,
)
from timekeeper.observability.metrics import access_denied_total, timesheet_transitions_total
from timekeeper.roles import RoleSet
from timekeeper.utils.dates import now_utc, week_end, week_start
from timekeeper.utils.ids import document_id

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ENRICH_BATCH_SIZE = 5
SCAN_PAGE_SIZE = 100
MAX_SCANNED_TIMESHEETS = 1000
REPORT_STATUSES = [TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED]
REPORT_TYPES = ("summary", "by-project", "by-user", "trends")
ROSTER_STATUSES = tuple(s.value for s in TimesheetStatus) + ("none",)
# required on a stored entry; an update may change them but never clear them
NON_NULL_ENTRY_FIELDS = ("projectId", "workDate", "hours", "billable")

PROFILE_FIELDS = ("accountId", "firstName", "lastName", "username", "email", "title", "department")


async def gather_batched(items: Sequence[T], fn: Callable[[T], Awaitable[R]], size: int) -> List[R]:
    """Run fn over items concurrently, size at a time, preserving order."""
    out: List[R] = []
    for i in range(0, len(items), size):
        out.extend(await asyncio.gather(*(fn(item) for item in items[i:i + size])))
    return out


def _project_ids(entries: Iterable[TimesheetEntry]) -> List[str]:
    return list(dict.fromkeys(e.projectId for e in entries))


def _user_view(profile: Optional[UserProfile]) -> Optional[dict]:
    if profile is None:
        return None
    return profile.model_dump(include=set(PROFILE_FIELDS))


def _submitted_desc(ts: Timesheet) -> tuple:
    # submitted first, most recent first
    submitted = ts.submittedAt
    return (submitted is None, -(submitted.timestamp() if submitted else 0))


def _display_name(profile: Optional[dict]) -> str:
    if not profile:
        return ""
    return f"{profile.get('firstName') or ''} {profile.get('lastName') or ''}".strip().casefold()


def _matches_search(profile: UserProfile, query: str) -> bool:
    full_name = f"{profile.firstName or ''} {profile.lastName or ''}".lower()
    return query in full_name or query in (profile.username or "").lower()


class TimesheetService:
    def __init__(
        self,
        backend: Backend,
        index: Optional[ManagerIndex] = None,
        batch_size: Optional[int] = None,
        access_timeout: Optional[float] = None,
    ):
        self.backend = backend
        self.resolver = AccessResolver(
            backend.profiles,
            backend.projects,
            batch_size=batch_size or settings.MEMBERSHIP_BATCH_SIZE,
            index=index,
        )
        self.access_timeout = access_timeout or settings.ACCESS_TIMEOUT_SECONDS

    # ── Access helpers ──

    async def roles_of(self, account_id: str) -> RoleSet:
        return await self.backend.identity.get_role_labels(account_id)

    async def access_of(self, account_id: str, organization_id: str, include_finance: bool = True) -> Access:
        roles = await self.roles_of(account_id)
        return await self.resolver.resolve_within(
            account_id,
            organization_id,
            roles,
            timeout=self.access_timeout,
            include_finance=include_finance,
        )

    async def _require_owner_or_admin(self, timesheet: Timesheet, requester_id: str, what: str) -> None:
        if timesheet.accountId == requester_id:
            return
        roles = await self.roles_of(requester_id)
        if not roles.is_admin:
            access_denied_total.labels(endpoint=what).inc()
            logger.warning(
                f"Refused {what}: requester is neither owner nor admin",
                extra={"account_id": requester_id, "timesheet_id": timesheet.id},
            )
            raise Forbidden(f"You can only {what} your own timesheet")

    async def _require_view(self, timesheet: Timesheet, requester_id: str, entries: List[TimesheetEntry]) -> Access:
        if timesheet.accountId == requester_id:
            return Access(AccessClass.OWNER, requester_id)
        access = await self.access_of(requester_id, timesheet.organizationId)
        if not can_view(access, timesheet, _project_ids(entries)):
            access_denied_total.labels(endpoint="view").inc()
            raise Forbidden("You do not have permission to view this timesheet")
        return access

    async def _scan(self, organization_id: str, filters: TimesheetFilters) -> Tuple[List[Timesheet], bool]:
        """
        Page through list_by_org up to MAX_SCANNED_TIMESHEETS rows. Returns the
        rows and whether matching rows were left unread.
        """
        rows: List[Timesheet] = []
        offset = 0
        while len(rows) < MAX_SCANNED_TIMESHEETS:
            page = await self.backend.timesheets.list_by_org(
                organization_id,
                filters.model_copy(update={"limit": SCAN_PAGE_SIZE, "offset": offset}),
            )
            rows.extend(page)
            if len(page) < SCAN_PAGE_SIZE:
                return rows, False
            offset += SCAN_PAGE_SIZE

        rows = rows[:MAX_SCANNED_TIMESHEETS]
        total = await self.backend.timesheets.count_by_org(organization_id, filters)
        truncated = total > len(rows)
        if truncated:
            logger.warning(
                f"Timesheet scan stopped at {len(rows)} of {total} rows",
                extra={"organization_id": organization_id},
            )
        return rows, truncated

    async def _entries_by_timesheet(self, timesheets: Sequence[Timesheet]) -> Dict[str, List[TimesheetEntry]]:
        lists = await gather_batched(
            timesheets,
            lambda ts: self.backend.entries.list_by_timesheet(ts.id),
            ENRICH_BATCH_SIZE,
        )
        return {ts.id: entries for ts, entries in zip(timesheets, lists)}

    # ── Week view / save ──

    async def get_week(self, account_id: str, week: date, requester_id: str) -> dict:
        timesheet = await self.backend.timesheets.find(account_id, week_start(week))
        if timesheet is None:
            return {"timesheet": None, "entries": [], "summary": aggregation.summarize([]).model_dump()}

        entries = await self.backend.entries.list_by_timesheet(timesheet.id)
        await self._require_view(timesheet, requester_id, entries)
        return {
            "timesheet": timesheet.model_dump(),
            "entries": [e.model_dump() for e in entries],
            "summary": aggregation.summarize(entries).model_dump(),
            "legalActions": lifecycle.legal_actions(timesheet.status),
        }

    async def save_week(self, req: SaveWeekRequest) -> dict:
        """Find or lazily create the week's timesheet, then add entries."""
        requester_id = req.requesterId or req.accountId
        monday = week_start(req.weekStart)
        sunday = week_end(monday)

        # Validate everything before the first write
        for i, entry in enumerate(req.entries):
            try:
                lifecycle.validate_hours(entry.hours)
            except ValidationError as e:
                e.details = {**(e.details or {}), "index": i}
                raise
            if not monday <= entry.workDate <= sunday:
                raise ValidationError(
                    f"workDate {entry.workDate.isoformat()} is outside the week of {monday.isoformat()}",
                    details={"field": "workDate", "index": i},
                )

        if requester_id != req.accountId:
            roles = await self.roles_of(requester_id)
            if not roles.is_admin:
                access_denied_total.labels(endpoint="save").inc()
                raise Forbidden("You can only log time on your own timesheet")

        timesheet = await self.backend.timesheets.find(req.accountId, monday)
        if timesheet is None:
            timesheet = await self.backend.timesheets.create(Timesheet(
                id=document_id(),
                accountId=req.accountId,
                organizationId=req.organizationId,
                weekStart=monday,
                status=TimesheetStatus.DRAFT,
            ))
            logger.info(
                f"Created draft timesheet for week {monday.isoformat()}",
                extra={"account_id": req.accountId, "timesheet_id": timesheet.id},
            )
        elif req.entries:
            lifecycle.ensure_editable(timesheet)

        created = []
        for entry in req.entries:
            created.append(await self.backend.entries.create(TimesheetEntry(
                id=document_id(),
                timesheetId=timesheet.id,
                **entry.model_dump(),
            )))

        return {"timesheet": timesheet.model_dump(), "entries": [e.model_dump() for e in created]}

    # ── Entries ──

    async def get_entry(self, entry_id: str, requester_id: str) -> dict:
        entry = await self.backend.entries.get(entry_id)
        timesheet = await self.backend.timesheets.get(entry.timesheetId)
        await self._require_view(timesheet, requester_id, [entry])
        return {"entry": entry.model_dump()}

    async def update_entry(self, entry_id: str, body: EntryUpdate) -> dict:
        entry = await self.backend.entries.get(entry_id)
        timesheet = await self.backend.timesheets.get(entry.timesheetId)
        await self._require_owner_or_admin(timesheet, body.requesterId, "edit entries on")
        lifecycle.ensure_editable(timesheet)

        fields = body.model_dump(exclude_unset=True, exclude={"requesterId"})
        for name in NON_NULL_ENTRY_FIELDS:
            if name in fields and fields[name] is None:
                raise ValidationError(f"{name} cannot be null", field=name)
        if "projectId" in fields and not fields["projectId"].strip():
            raise ValidationError("projectId cannot be empty", field="projectId")
        if "hours" in fields:
            fields["hours"] = lifecycle.validate_hours(fields["hours"])
        if "workDate" in fields:
            if not timesheet.weekStart <= fields["workDate"] <= week_end(timesheet.weekStart):
                raise ValidationError("workDate is outside the timesheet's week", field="workDate")
        if "taskId" in fields:
            fields["taskId"] = fields["taskId"] or None
        if "notes" in fields:
            fields["notes"] = fields["notes"] or None

        if not fields:
            return {"entry": entry.model_dump()}
        updated = await self.backend.entries.update(entry_id, fields)
        return {"entry": updated.model_dump()}

    async def delete_entry(self, entry_id: str, requester_id: str) -> dict:
        entry = await self.backend.entries.get(entry_id)
        timesheet = await self.backend.timesheets.get(entry.timesheetId)
        await self._require_owner_or_admin(timesheet, requester_id, "delete entries on")
        lifecycle.ensure_editable(timesheet)
        await self.backend.entries.delete(entry_id)
        return {"deleted": True, "entryId": entry_id}

    # ── Transitions ──

    async def transition(
        self,
        timesheet_id: str,
        action: str,
        requester_id: str,
        comment: Optional[str] = None,
    ) -> dict:
        if action not in lifecycle.ACTIONS:
            raise ValidationError(f"Unknown action: {action}", field="action")

        timesheet = await self.backend.timesheets.get(timesheet_id)
        entries = await self.backend.entries.list_by_timesheet(timesheet_id)

        if action in (lifecycle.SUBMIT, lifecycle.UNSUBMIT):
            await self._require_owner_or_admin(timesheet, requester_id, action)
            if action == lifecycle.SUBMIT and not entries:
                raise ValidationError("Cannot submit a timesheet without entries", field="entries")
        else:
            access = await self.access_of(requester_id, timesheet.organizationId, include_finance=False)
            if not can_approve(access, timesheet, _project_ids(entries)):
                access_denied_total.labels(endpoint=action).inc()
                logger.warning(
                    f"Refused {action}: requester cannot decide this timesheet",
                    extra={"account_id": requester_id, "timesheet_id": timesheet_id, "action": action},
                )
                raise Forbidden(f"You are not allowed to {action} this timesheet")

        fields = lifecycle.transition(timesheet, action, actor_id=requester_id, comment=comment)
        updated = await self.backend.timesheets.update(timesheet_id, fields)
        timesheet_transitions_total.labels(action=action).inc()
        logger.info(
            f"Timesheet {action}: {TimesheetStatus(timesheet.status).value} -> {TimesheetStatus(updated.status).value}",
            extra={"account_id": requester_id, "timesheet_id": timesheet_id, "action": action},
        )

        return {
            "timesheet": updated.model_dump(),
            "summary": aggregation.summarize(entries).model_dump(),
            "legalActions": lifecycle.legal_actions(updated.status),
        }

    async def bulk_decide(self, req: BulkActionRequest) -> dict:
        """Approve or reject many timesheets; each one succeeds or fails on its own."""
        if req.action not in (lifecycle.APPROVE, lifecycle.REJECT):
            raise ValidationError('action must be either "approve" or "reject"', field="action")
        if not req.timesheetIds:
            raise ValidationError("timesheetIds array is required", field="timesheetIds")
        if req.comment is None or not req.comment.strip():
            raise ValidationError("comment is required", field="comment")

        ids = list(dict.fromkeys(req.timesheetIds))
        succeeded, failed = [], []

        # The organization is taken from the first timesheet that exists
        anchor = None
        for timesheet_id in ids:
            try:
                anchor = await self.backend.timesheets.get(timesheet_id)
                break
            except NotFound as e:
                failed.append({"timesheetId": timesheet_id, "code": e.code, "error": e.message})
        if anchor is None:
            return {
                "message": f"Bulk {req.action}: 0 succeeded, {len(failed)} failed",
                "results": {"succeeded": succeeded, "failed": failed},
            }

        access = await self.access_of(req.requesterId, anchor.organizationId, include_finance=False)
        access.require_any("bulk")

        for timesheet_id in ids[len(failed):]:
            try:
                timesheet = await self.backend.timesheets.get(timesheet_id)
                entries = await self.backend.entries.list_by_timesheet(timesheet_id)
                if timesheet.organizationId != anchor.organizationId or not can_approve(
                    access, timesheet, _project_ids(entries)
                ):
                    raise Forbidden(f"You are not allowed to {req.action} this timesheet")
                fields = lifecycle.transition(timesheet, req.action, actor_id=req.requesterId, comment=req.comment)
                updated = await self.backend.timesheets.update(timesheet_id, fields)
            except TimekeeperError as e:
                logger.info(
                    f"Bulk {req.action} skipped: {e.message}",
                    extra={"timesheet_id": timesheet_id, "action": req.action},
                )
                failed.append({"timesheetId": timesheet_id, "code": e.code, "error": e.message})
                continue
            timesheet_transitions_total.labels(action=req.action).inc()
            succeeded.append({
                "timesheetId": timesheet_id,
                "action": req.action,
                "status": TimesheetStatus(updated.status).value,
            })

        return {
            "message": f"Bulk {req.action}: {len(succeeded)} succeeded, {len(failed)} failed",
            "results": {"succeeded": succeeded, "failed": failed},
        }

    # ── Listings ──

    async def list_approvals(
        self,
        requester_id: str,
        organization_id: str,
        status: Optional[TimesheetStatus] = None,
        week: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        """
        Admin and supervisor scopes are plain timesheet filters, so the store
        paginates and only the page is enriched. Manager scope depends on each
        timesheet's entries and needs a scan of the organization.
        """
        access = await self.access_of(requester_id, organization_id, include_finance=False)
        try:
            access.require_any("approvals")
        except Forbidden:
            access_denied_total.labels(endpoint="approvals").inc()
            logger.warning(
                "Approvals listing refused: no admin, supervisor or manager access",
                extra={"account_id": requester_id, "organization_id": organization_id},
            )
            raise

        limit = max(1, limit)
        page = max(1, page)
        offset = (page - 1) * limit

        filters = TimesheetFilters(
            status=status,
            weekStart=week_start(week) if week else None,
        )
        truncated = False
        if access.kind == AccessClass.ADMIN or not access.is_manager:
            if access.kind != AccessClass.ADMIN:
                filters.accountIds = sorted(access.supervised_account_ids)
            total = await self.backend.timesheets.count_by_org(organization_id, filters)
            rows = await self.backend.timesheets.list_by_org(
                organization_id,
                filters.model_copy(update={"limit": limit, "offset": offset}),
            )
            entries_by_ts = await self._entries_by_timesheet(rows)
            rows.sort(key=_submitted_desc)
        else:
            scanned, truncated = await self._scan(organization_id, filters)
            scanned_entries = await self._entries_by_timesheet(scanned)
            visible = [
                ts for ts in scanned
                if in_approval_scope(access, ts, _project_ids(scanned_entries[ts.id]))
            ]
            visible.sort(key=_submitted_desc)
            total = len(visible)
            rows = visible[offset:offset + limit]
            entries_by_ts = {ts.id: scanned_entries[ts.id] for ts in rows}

        profiles = {
            p.accountId: p
            for p in await self.backend.profiles.get_profiles(sorted({ts.accountId for ts in rows}))
        }
        projects = {}
        if rows:
            listed = await attempt("projects", self.backend.projects.list_projects(organization_id))
            projects = {p.id: p for p in listed.or_else([])}

        items = []
        for ts in rows:
            entries = entries_by_ts[ts.id]
            project_ids = _project_ids(entries)
            summary = aggregation.summarize(entries).model_dump()
            summary["projects"] = [
                {"id": pid, "name": projects[pid].name, "code": projects[pid].code}
                for pid in project_ids if pid in projects
            ]
            items.append({
                "timesheet": ts.model_dump(),
                "user": _user_view(profiles.get(ts.accountId)),
                "summary": summary,
                "projectIds": project_ids,
                "canApprove": ts.status == TimesheetStatus.SUBMITTED and can_approve(access, ts, project_ids),
            })

        return {
            "timesheets": items,
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": (total + limit - 1) // limit,
            "truncated": truncated,
            **access.to_dict(),
            "supervisedCount": len(access.supervised_account_ids),
            "managedProjectsCount": len(access.managed_project_ids),
        }

    async def staff_timesheets(
        self,
        account_id: str,
        requester_id: str,
        organization_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[TimesheetStatus] = None,
        limit: int = 50,
    ) -> dict:
        staff = await self.backend.profiles.get_profile(account_id)
        if staff is None or staff.organizationId != organization_id:
            raise NotFound("Staff member not found")

        roles = await self.roles_of(requester_id)
        access = staff_access(requester_id, roles, staff)
        if access.kind == AccessClass.NONE:
            access_denied_total.labels(endpoint="staff").inc()
            raise Forbidden("You do not have permission to view this staff member's timesheets")

        timesheets = await self.backend.timesheets.list_by_org(organization_id, TimesheetFilters(
            accountIds=[account_id],
            weekFrom=start,
            weekTo=end,
            status=status,
            limit=limit,
        ))
        entries_by_ts = await self._entries_by_timesheet(timesheets)
        summaries = {ts.id: aggregation.summarize(entries_by_ts[ts.id]) for ts in timesheets}

        return {
            "staffMember": {**_user_view(staff), "supervisorId": staff.supervisorId},
            "timesheets": [
                {
                    "timesheet": ts.model_dump(),
                    "summary": summaries[ts.id].model_dump(),
                    "entries": [e.model_dump() for e in entries_by_ts[ts.id]],
                }
                for ts in timesheets
            ],
            "statistics": aggregation.timesheet_statistics(timesheets, summaries),
            "accessType": access.kind.value,
        }

    async def team_view(
        self,
        requester_id: str,
        organization_id: str,
        view_as: Optional[str] = None,
        status: Optional[str] = None,
        week: Optional[date] = None,
        department: Optional[str] = None,
        search: Optional[str] = None,
        today: Optional[date] = None,
    ) -> dict:
        """
        One week of every visible staff member's timesheet. Admin and finance
        see the organization, supervisors their staff. Staff without a
        timesheet that week are listed with status "none".
        """
        if status is not None and status not in ROSTER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(ROSTER_STATUSES)}", field="status")

        roles = await self.roles_of(requester_id)
        views = await self.resolver.team_views_within(
            requester_id, organization_id, roles, timeout=self.access_timeout,
        )
        if not views:
            access_denied_total.labels(endpoint="team").inc()
            logger.warning(
                "Team view refused: no admin, finance or supervisor access",
                extra={"account_id": requester_id, "organization_id": organization_id},
            )
            raise Forbidden("Only admins, finance staff and supervisors can view team timesheets")
        # an unavailable viewAs falls back to the first view
        access = next((v for v in views if v.kind.value == view_as), views[0])

        monday = week_start(week or today or now_utc().date())
        staff = await self.backend.profiles.list_profiles(
            organization_id,
            account_ids=sorted(access.supervised_account_ids) if access.kind == AccessClass.SUPERVISOR else None,
            department=department or None,
        )
        if search:
            query = search.lower()
            staff = [p for p in staff if _matches_search(p, query)]

        account_ids = [p.accountId for p in staff]
        timesheets = await self.backend.timesheets.list_by_org(organization_id, TimesheetFilters(
            weekStart=monday,
            accountIds=account_ids,
            limit=max(len(account_ids), 1),
        ))
        by_account = {ts.accountId: ts for ts in timesheets}
        lists = await gather_batched(
            timesheets,
            lambda ts: attempt("entries", self.backend.entries.list_by_timesheet(ts.id)),
            ENRICH_BATCH_SIZE,
        )
        entries_by_ts = {ts.id: result for ts, result in zip(timesheets, lists)}

        rows = []
        for profile in staff:
            ts = by_account.get(profile.accountId)
            week_view = None
            if ts is not None and entries_by_ts[ts.id].ok:
                summary = aggregation.summarize(entries_by_ts[ts.id].value)
                week_view = {
                    "timesheetId": ts.id,
                    "status": TimesheetStatus(ts.status).value,
                    **summary.model_dump(),
                    "weekStart": ts.weekStart.isoformat(),
                    "submittedAt": ts.submittedAt,
                    "approvedAt": ts.approvedAt,
                    "approvedBy": ts.approvedBy,
                }
            rows.append({"user": _user_view(profile), "currentWeekTimesheet": week_view})

        if status == "none":
            rows = [r for r in rows if r["currentWeekTimesheet"] is None]
        elif status is not None:
            rows = [r for r in rows if r["currentWeekTimesheet"] and r["currentWeekTimesheet"]["status"] == status]
        rows.sort(key=lambda r: _display_name(r["user"]))

        data = {
            "staff": rows,
            "statistics": aggregation.roster_statistics(rows),
            "accessType": access.kind.value,
            "availableViews": [v.kind.value for v in views],
            "weekStart": monday.isoformat(),
        }
        if access.kind == AccessClass.SUPERVISOR:
            data["supervisedCount"] = len(access.supervised_account_ids)
        return data

    async def details(self, timesheet_id: str, requester_id: str) -> dict:
        timesheet = await self.backend.timesheets.get(timesheet_id)
        entries = await self.backend.entries.list_by_timesheet(timesheet_id)
        project_ids = _project_ids(entries)

        if timesheet.accountId == requester_id:
            # owners skip the scope fan-out; only the admin label changes what they may do
            roles = await self.roles_of(requester_id)
            access = Access(AccessClass.ADMIN if roles.is_admin else AccessClass.OWNER, requester_id)
        else:
            access = await self.access_of(requester_id, timesheet.organizationId)
        if not can_view(access, timesheet, project_ids):
            access_denied_total.labels(endpoint="details").inc()
            raise Forbidden("You do not have permission to view this timesheet")

        profile = await self.backend.profiles.get_profile(timesheet.accountId)
        return {
            "timesheet": timesheet.model_dump(),
            "entries": [e.model_dump() for e in entries],
            "user": _user_view(profile),
            "summary": aggregation.summarize(entries).model_dump(),
            "byProject": [g.model_dump() for g in aggregation.by_project(entries)],
            "byDay": [g.model_dump() for g in aggregation.by_day(entries)],
            "accessType": access.kind.value,
            "canApprove": timesheet.status == TimesheetStatus.SUBMITTED and can_approve(access, timesheet, project_ids),
            "legalActions": lifecycle.legal_actions(timesheet.status),
        }

    async def dashboard(self, account_id: str, organization_id: str, today: Optional[date] = None) -> dict:
        """The requester's own status counts, current week and recent timesheets."""
        own = TimesheetFilters(accountIds=[account_id])
        statuses = list(TimesheetStatus)
        totals = await asyncio.gather(*(
            self.backend.timesheets.count_by_org(organization_id, own.model_copy(update={"status": s}))
            for s in statuses
        ))
        counts = {s.value: n for s, n in zip(statuses, totals)}
        counts["total"] = sum(totals)

        current_monday = week_start(today or now_utc().date())
        current = await self.backend.timesheets.find(account_id, current_monday)
        if current is not None and current.organizationId != organization_id:
            current = None
        current_entries = await self.backend.entries.list_by_timesheet(current.id) if current else []
        recent = await self.backend.timesheets.list_by_org(organization_id, own.model_copy(update={"limit": 5}))

        return {
            "statusCounts": counts,
            "currentWeek": {
                "weekStart": current_monday.isoformat(),
                "timesheet": current.model_dump() if current else None,
                "summary": aggregation.summarize(current_entries).model_dump(),
            },
            "recentTimesheets": [ts.model_dump() for ts in recent],
        }

    async def report(
        self,
        requester_id: str,
        organization_id: str,
        report_type: str = "summary",
        start: Optional[date] = None,
        end: Optional[date] = None,
        project_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> dict:
        """
        Hours over submitted and approved timesheets only. Admin and finance see
        the organization; supervisors their staff; managers entries on the
        projects they manage; everyone their own.
        """
        if report_type not in REPORT_TYPES:
            raise ValidationError(f"type must be one of {', '.join(REPORT_TYPES)}", field="type")

        access = await self.access_of(requester_id, organization_id)

        filters = TimesheetFilters(statuses=REPORT_STATUSES, weekFrom=start, weekTo=end)
        if user_id:
            filters.accountIds = [user_id]
        elif not access.is_unscoped and not access.is_manager:
            filters.accountIds = sorted(access.supervised_account_ids | {requester_id})

        timesheets, truncated = await self._scan(organization_id, filters)
        entries_by_ts = await self._entries_by_timesheet(timesheets)
        by_id = {ts.id: ts for ts in timesheets}

        def visible(ts: Timesheet, entry: TimesheetEntry) -> bool:
            if access.is_unscoped or ts.accountId == requester_id:
                return True
            if ts.accountId in access.supervised_account_ids:
                return True
            return entry.projectId in access.managed_project_ids

        entries = [
            e
            for ts in timesheets
            for e in entries_by_ts[ts.id]
            if visible(ts, e) and (project_id is None or e.projectId == project_id)
        ]

        if report_type == "summary":
            projects = aggregation.by_project(entries)
            users = aggregation.by_user(entries, by_id)
            data: Any = {
                "summary": aggregation.summarize(entries).model_dump(),
                "topProjects": [g.model_dump() for g in aggregation.top(projects)],
                "topUsers": [g.model_dump() for g in aggregation.top(users)],
            }
        elif report_type == "by-project":
            data = [g.model_dump() for g in aggregation.by_project(entries)]
        elif report_type == "by-user":
            data = [g.model_dump() for g in aggregation.by_user(entries, by_id)]
        else:
            data = sorted(
                (g.model_dump() for g in aggregation.by_week(entries, by_id)),
                key=lambda g: g["key"],
            )

        return {
            "type": report_type,
            **access.to_dict(),
            "filters": {
                "startDate": start.isoformat() if start else None,
                "endDate": end.isoformat() if end else None,
                "projectId": project_id,
                "userId": user_id,
            },
            "data": data,
            "truncated": truncated,
        }
