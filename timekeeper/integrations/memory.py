"""
In-process backend for local development and tests.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional

from timekeeper.errors import NotFound, ValidationError
from timekeeper.integrations.base import (
    Backend,
    EntryStore,
    IdentityLookup,
    ProfileLookup,
    ProjectLookup,
    TimesheetStore,
    register_backend,
)
from timekeeper.models import (
    Project,
    TeamMember,
    Timesheet,
    TimesheetEntry,
    TimesheetFilters,
    UserProfile,
)
from timekeeper.roles import RoleSet
from timekeeper.utils.dates import parse_date


class MemoryIdentity(IdentityLookup):
    def __init__(self):
        self.labels: Dict[str, RoleSet] = {}

    async def get_role_labels(self, account_id: str) -> RoleSet:
        if account_id not in self.labels:
            raise NotFound(f"Account {account_id} not found")
        return self.labels[account_id]


class MemoryProfiles(ProfileLookup):
    def __init__(self):
        self.profiles: Dict[str, UserProfile] = {}

    async def find_profiles_by_supervisor(self, account_id: str, organization_id: str) -> List[UserProfile]:
        return [
            p.model_copy()
            for p in self.profiles.values()
            if p.supervisorId == account_id and p.organizationId == organization_id
        ]

    async def get_profile(self, account_id: str) -> Optional[UserProfile]:
        profile = self.profiles.get(account_id)
        return profile.model_copy() if profile else None

    async def get_profiles(self, account_ids: List[str]) -> List[UserProfile]:
        return [self.profiles[a].model_copy() for a in account_ids if a in self.profiles]

    async def list_profiles(
        self,
        organization_id: str,
        account_ids: Optional[List[str]] = None,
        department: Optional[str] = None,
    ) -> List[UserProfile]:
        return [
            p.model_copy()
            for p in self.profiles.values()
            if p.organizationId == organization_id
            and (account_ids is None or p.accountId in account_ids)
            and (department is None or p.department == department)
        ]


class MemoryProjects(ProjectLookup):
    def __init__(self):
        self.projects: Dict[str, Project] = {}
        self.teams: Dict[str, List[TeamMember]] = {}

    async def list_projects(self, organization_id: str) -> List[Project]:
        return [p.model_copy() for p in self.projects.values() if p.organizationId == organization_id]

    async def list_team_members(self, team_id: str) -> List[TeamMember]:
        if team_id not in self.teams:
            raise NotFound(f"Team {team_id} not found")
        return [m.model_copy() for m in self.teams[team_id]]


class MemoryTimesheets(TimesheetStore):
    def __init__(self):
        self.rows: Dict[str, Timesheet] = {}

    async def find(self, account_id: str, week_start) -> Optional[Timesheet]:
        week = parse_date(week_start)
        for ts in self.rows.values():
            if ts.accountId == account_id and ts.weekStart == week:
                return ts.model_copy()
        return None

    async def get(self, timesheet_id: str) -> Timesheet:
        if timesheet_id not in self.rows:
            raise NotFound(f"Timesheet {timesheet_id} not found")
        return self.rows[timesheet_id].model_copy()

    async def create(self, timesheet: Timesheet) -> Timesheet:
        if await self.find(timesheet.accountId, timesheet.weekStart):
            raise ValidationError("A timesheet already exists for this week", field="weekStart")
        self.rows[timesheet.id] = timesheet.model_copy()
        return timesheet.model_copy()

    async def update(self, timesheet_id: str, fields: Dict[str, Any]) -> Timesheet:
        current = await self.get(timesheet_id)
        updated = current.model_copy(update=fields)
        self.rows[timesheet_id] = updated
        return updated.model_copy()

    async def list_by_org(self, organization_id: str, filters: TimesheetFilters) -> List[Timesheet]:
        rows = [ts for ts in self.rows.values() if ts.organizationId == organization_id]
        rows = [ts for ts in rows if _matches(ts, filters)]
        rows.sort(key=lambda ts: ts.weekStart, reverse=True)
        return [ts.model_copy() for ts in rows[filters.offset:filters.offset + filters.limit]]

    async def count_by_org(self, organization_id: str, filters: TimesheetFilters) -> int:
        return sum(
            1 for ts in self.rows.values()
            if ts.organizationId == organization_id and _matches(ts, filters)
        )


def _matches(ts: Timesheet, filters: TimesheetFilters) -> bool:
    if filters.status is not None and ts.status != filters.status:
        return False
    if filters.statuses is not None and ts.status not in filters.statuses:
        return False
    if filters.weekStart is not None and ts.weekStart != filters.weekStart:
        return False
    if filters.weekFrom is not None and ts.weekStart < filters.weekFrom:
        return False
    if filters.weekTo is not None and ts.weekStart > filters.weekTo:
        return False
    if filters.accountIds is not None and ts.accountId not in filters.accountIds:
        return False
    return True


class MemoryEntries(EntryStore):
    def __init__(self):
        self.rows: Dict[str, TimesheetEntry] = {}

    async def get(self, entry_id: str) -> TimesheetEntry:
        if entry_id not in self.rows:
            raise NotFound(f"Entry {entry_id} not found")
        return self.rows[entry_id].model_copy()

    async def list_by_timesheet(self, timesheet_id: str) -> List[TimesheetEntry]:
        rows = [e for e in self.rows.values() if e.timesheetId == timesheet_id]
        rows.sort(key=lambda e: e.workDate)
        return [e.model_copy() for e in rows]

    async def create(self, entry: TimesheetEntry) -> TimesheetEntry:
        self.rows[entry.id] = entry.model_copy()
        return entry.model_copy()

    async def update(self, entry_id: str, fields: Dict[str, Any]) -> TimesheetEntry:
        current = await self.get(entry_id)
        updated = current.model_copy(update=fields)
        self.rows[entry_id] = updated
        return updated.model_copy()

    async def delete(self, entry_id: str) -> None:
        if entry_id not in self.rows:
            raise NotFound(f"Entry {entry_id} not found")
        del self.rows[entry_id]


@register_backend("memory")
class MemoryBackend(Backend):
    """Every collaborator backed by dictionaries; seed helpers for fixtures."""

    def __init__(self):
        self.identity = MemoryIdentity()
        self.profiles = MemoryProfiles()
        self.projects = MemoryProjects()
        self.timesheets = MemoryTimesheets()
        self.entries = MemoryEntries()

    def add_user(
        self,
        account_id: str,
        organization_id: str,
        labels: Iterable[str] = ("staff",),
        supervisor_id: Optional[str] = None,
        **profile: Any,
    ) -> UserProfile:
        self.identity.labels[account_id] = RoleSet.of(labels)
        record = UserProfile(
            accountId=account_id,
            organizationId=organization_id,
            supervisorId=supervisor_id,
            **profile,
        )
        self.profiles.profiles[account_id] = record
        return record

    def add_project(
        self,
        project_id: str,
        organization_id: str,
        team_id: Optional[str] = None,
        members: Optional[Dict[str, Iterable[str]]] = None,
        **fields: Any,
    ) -> Project:
        project = Project(id=project_id, organizationId=organization_id, teamId=team_id, **fields)
        self.projects.projects[project_id] = project
        if team_id is not None:
            self.projects.teams[team_id] = [
                TeamMember(accountId=account_id, roles=set(roles))
                for account_id, roles in (members or {}).items()
            ]
        return project

    async def ping(self) -> Dict[str, Any]:
        return {"backend": "memory"}
