from __future__ import annotations
from datetime import date, datetime
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, TypeVar
import logging

from timekeeper.config import settings
from timekeeper.errors import NotFound, UpstreamUnavailable, ValidationError
from timekeeper.integrations.base import (
    Backend,
    EntryStore,
    IdentityLookup,
    ProfileLookup,
    ProjectLookup,
    TimesheetStore,
    register_backend,
)
from timekeeper.integrations.appwrite_client import AppwriteClient, BackendAPIError
from timekeeper.integrations.appwrite_types import Document, Query
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

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ENTRIES_PER_TIMESHEET = 500
MAX_PROJECTS_PER_ORG = 200
MAX_SUPERVISED = 200
MAX_ROSTER = 500


async def _call(what: str, call: Awaitable[T]) -> T:
    """Await a client call, translating API errors into workflow errors."""
    try:
        return await call
    except BackendAPIError as e:
        if e.code == "not_found":
            raise NotFound(f"{what} not found") from e
        if e.code in ("validation_error", "conflict"):
            raise ValidationError(f"{what}: {e.message}") from e
        logger.error(f"Appwrite call for {what} failed: {e.code} {e.message}")
        raise UpstreamUnavailable(f"{what} unavailable: {e.message}") from e


def _serialize(fields: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, date):
            value = value.isoformat()
        out[key] = value
    return out


def _timesheet(doc: Document) -> Timesheet:
    data = doc.data()
    if data.get("weekStart"):
        data["weekStart"] = parse_date(data["weekStart"])
    if not data.get("status"):
        data["status"] = "draft"
    return Timesheet.model_validate({**data, "id": doc.id})


def _entry(doc: Document) -> TimesheetEntry:
    data = doc.data()
    if data.get("workDate"):
        data["workDate"] = parse_date(data["workDate"])
    return TimesheetEntry.model_validate({**data, "id": doc.id})


def _profile(doc: Document) -> UserProfile:
    return UserProfile.model_validate(doc.data())


def _project(doc: Document) -> Project:
    data = doc.data()
    # projects reference their membership team as projectTeamId
    data.setdefault("teamId", data.get("projectTeamId"))
    return Project.model_validate({**data, "id": doc.id})


def timesheet_permissions(account_id: str) -> List[str]:
    """Owner reads/updates/deletes; manager and admin labels read and update."""
    return [
        f'read("user:{account_id}")',
        'read("label:manager")',
        'read("label:admin")',
        f'update("user:{account_id}")',
        'update("label:manager")',
        'update("label:admin")',
        f'delete("user:{account_id}")',
    ]


class AppwriteIdentity(IdentityLookup):
    def __init__(self, client: AppwriteClient):
        self.client = client

    async def get_role_labels(self, account_id: str) -> RoleSet:
        user = await _call(f"Account {account_id}", self.client.get_user(account_id))
        return RoleSet.of(user.labels)


class AppwriteProfiles(ProfileLookup):
    def __init__(self, client: AppwriteClient):
        self.client = client
        self.collection = settings.COL_USERS

    async def find_profiles_by_supervisor(self, account_id: str, organization_id: str) -> List[UserProfile]:
        result = await _call("Profiles", self.client.list_documents(self.collection, [
            Query.equal("supervisorId", account_id),
            Query.equal("organizationId", organization_id),
            Query.limit(MAX_SUPERVISED),
        ]))
        return [_profile(d) for d in result.documents]

    async def get_profile(self, account_id: str) -> Optional[UserProfile]:
        result = await _call("Profile", self.client.list_documents(self.collection, [
            Query.equal("accountId", account_id),
            Query.limit(1),
        ]))
        return _profile(result.documents[0]) if result.documents else None

    async def get_profiles(self, account_ids: List[str]) -> List[UserProfile]:
        if not account_ids:
            return []
        result = await _call("Profiles", self.client.list_documents(self.collection, [
            Query.equal("accountId", list(account_ids)),
            Query.limit(max(len(account_ids), 1)),
        ]))
        return [_profile(d) for d in result.documents]

    async def list_profiles(
        self,
        organization_id: str,
        account_ids: Optional[List[str]] = None,
        department: Optional[str] = None,
    ) -> List[UserProfile]:
        queries = [Query.equal("organizationId", organization_id)]
        if account_ids is not None:
            if not account_ids:
                return []
            queries.append(Query.equal("accountId", list(account_ids)))
        if department:
            queries.append(Query.equal("department", department))
        queries.append(Query.limit(MAX_ROSTER))
        result = await _call("Profiles", self.client.list_documents(self.collection, queries))
        return [_profile(d) for d in result.documents]


class AppwriteProjects(ProjectLookup):
    def __init__(self, client: AppwriteClient):
        self.client = client
        self.collection = settings.COL_PROJECTS

    async def list_projects(self, organization_id: str) -> List[Project]:
        result = await _call("Projects", self.client.list_documents(self.collection, [
            Query.equal("organizationId", organization_id),
            Query.limit(MAX_PROJECTS_PER_ORG),
        ]))
        return [_project(d) for d in result.documents]

    async def list_team_members(self, team_id: str) -> List[TeamMember]:
        result = await _call(f"Team {team_id}", self.client.list_memberships(team_id))
        return [TeamMember(accountId=m.userId, roles=set(m.roles)) for m in result.memberships]


class AppwriteTimesheets(TimesheetStore):
    def __init__(self, client: AppwriteClient):
        self.client = client
        self.collection = settings.COL_TIMESHEETS

    async def find(self, account_id: str, week_start) -> Optional[Timesheet]:
        result = await _call("Timesheets", self.client.list_documents(self.collection, [
            Query.equal("accountId", account_id),
            Query.equal("weekStart", parse_date(week_start).isoformat()),
            Query.limit(1),
        ]))
        return _timesheet(result.documents[0]) if result.documents else None

    async def get(self, timesheet_id: str) -> Timesheet:
        doc = await _call(f"Timesheet {timesheet_id}", self.client.get_document(self.collection, timesheet_id))
        return _timesheet(doc)

    async def create(self, timesheet: Timesheet) -> Timesheet:
        data = _serialize(timesheet.model_dump(exclude={"id"}))
        doc = await _call("Timesheet", self.client.create_document(
            self.collection,
            timesheet.id,
            data,
            permissions=timesheet_permissions(timesheet.accountId),
        ))
        return _timesheet(doc)

    async def update(self, timesheet_id: str, fields: Dict[str, Any]) -> Timesheet:
        doc = await _call(
            f"Timesheet {timesheet_id}",
            self.client.update_document(self.collection, timesheet_id, _serialize(fields)),
        )
        return _timesheet(doc)

    def _queries(self, organization_id: str, filters: TimesheetFilters) -> Optional[List[str]]:
        """Filter queries, or None when the filters cannot match anything."""
        queries = [Query.equal("organizationId", organization_id)]
        if filters.status is not None:
            queries.append(Query.equal("status", filters.status.value))
        if filters.statuses:
            queries.append(Query.equal("status", [s.value for s in filters.statuses]))
        if filters.weekStart is not None:
            queries.append(Query.equal("weekStart", filters.weekStart.isoformat()))
        if filters.weekFrom is not None:
            queries.append(Query.greater_than_equal("weekStart", filters.weekFrom.isoformat()))
        if filters.weekTo is not None:
            queries.append(Query.less_than_equal("weekStart", filters.weekTo.isoformat()))
        if filters.accountIds is not None:
            if not filters.accountIds:
                return None
            queries.append(Query.equal("accountId", filters.accountIds))
        return queries

    async def list_by_org(self, organization_id: str, filters: TimesheetFilters) -> List[Timesheet]:
        queries = self._queries(organization_id, filters)
        if queries is None:
            return []
        queries += [
            Query.order_desc("weekStart"),
            Query.limit(filters.limit),
            Query.offset(filters.offset),
        ]
        result = await _call("Timesheets", self.client.list_documents(self.collection, queries))
        return [_timesheet(d) for d in result.documents]

    async def count_by_org(self, organization_id: str, filters: TimesheetFilters) -> int:
        queries = self._queries(organization_id, filters)
        if queries is None:
            return 0
        # total covers every match whatever the page size
        result = await _call("Timesheets", self.client.list_documents(self.collection, queries + [Query.limit(1)]))
        return result.total


class AppwriteEntries(EntryStore):
    def __init__(self, client: AppwriteClient):
        self.client = client
        self.collection = settings.COL_ENTRIES

    async def get(self, entry_id: str) -> TimesheetEntry:
        doc = await _call(f"Entry {entry_id}", self.client.get_document(self.collection, entry_id))
        return _entry(doc)

    async def list_by_timesheet(self, timesheet_id: str) -> List[TimesheetEntry]:
        result = await _call("Entries", self.client.list_documents(self.collection, [
            Query.equal("timesheetId", timesheet_id),
            Query.order_asc("workDate"),
            Query.limit(MAX_ENTRIES_PER_TIMESHEET),
        ]))
        return [_entry(d) for d in result.documents]

    async def create(self, entry: TimesheetEntry) -> TimesheetEntry:
        doc = await _call("Entry", self.client.create_document(
            self.collection,
            entry.id,
            _serialize(entry.model_dump(exclude={"id"})),
        ))
        return _entry(doc)

    async def update(self, entry_id: str, fields: Dict[str, Any]) -> TimesheetEntry:
        doc = await _call(
            f"Entry {entry_id}",
            self.client.update_document(self.collection, entry_id, _serialize(fields)),
        )
        return _entry(doc)

    async def delete(self, entry_id: str) -> None:
        await _call(f"Entry {entry_id}", self.client.delete_document(self.collection, entry_id))


@register_backend("appwrite")
class AppwriteBackend(Backend):
    """
    Appwrite deployment of the project management system.
    Raises ValueError when the project id or API key is not configured.
    """

    def __init__(self, client: Optional[AppwriteClient] = None):
        self.client = client or AppwriteClient()
        self.identity = AppwriteIdentity(self.client)
        self.profiles = AppwriteProfiles(self.client)
        self.projects = AppwriteProjects(self.client)
        self.timesheets = AppwriteTimesheets(self.client)
        self.entries = AppwriteEntries(self.client)

    async def ping(self) -> Dict[str, Any]:
        return {
            "backend": "appwrite",
            "endpoint": self.client.endpoint,
            "database": self.client.database_id,
        }
