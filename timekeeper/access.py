"""
Access resolution: which timesheets a requester may see or decide on.

Resolution order:
  1. admin label      -> admin, unscoped, no lookups
  2. finance label    -> finance, read-only, unscoped (when enabled by caller)
  3. supervisor scope -> accounts whose profile names the requester as supervisor
  4. manager scope    -> projects whose team gives the requester the manager role
  5. neither          -> none

Supervisor and manager scopes are additive. Every sub-lookup produces a
LookupResult; a failed lookup folds to "no access from this path" and never
aborts the resolution.
"""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Dict, FrozenSet, Generic, Iterable, List, Optional, Set, Tuple, TypeVar

from timekeeper.errors import Forbidden, UpstreamUnavailable
from timekeeper.integrations.base import ProfileLookup, ProjectLookup
from timekeeper.models import Project, TeamMember, Timesheet, UserProfile
from timekeeper.observability.metrics import access_lookup_failures_total
from timekeeper.roles import MANAGER, RoleSet

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccessClass(str, Enum):
    ADMIN = "admin"
    FINANCE = "finance"
    SUPERVISOR = "supervisor"
    MANAGER = "manager"
    OWNER = "owner"
    NONE = "none"


@dataclass(frozen=True)
class Access:
    """Resolved access of one requester within one organization."""

    kind: AccessClass
    account_id: str
    supervised_account_ids: FrozenSet[str] = frozenset()
    managed_project_ids: FrozenSet[str] = frozenset()

    @property
    def is_unscoped(self) -> bool:
        return self.kind in (AccessClass.ADMIN, AccessClass.FINANCE)

    @property
    def is_supervisor(self) -> bool:
        return bool(self.supervised_account_ids)

    @property
    def is_manager(self) -> bool:
        return bool(self.managed_project_ids)

    @property
    def classes(self) -> List[AccessClass]:
        """All classes that apply; supervisor and manager may both be present."""
        if self.kind in (AccessClass.ADMIN, AccessClass.FINANCE, AccessClass.OWNER, AccessClass.NONE):
            return [self.kind]
        out = []
        if self.is_supervisor:
            out.append(AccessClass.SUPERVISOR)
        if self.is_manager:
            out.append(AccessClass.MANAGER)
        return out

    def require_any(self, endpoint: str) -> "Access":
        if self.kind == AccessClass.NONE:
            raise Forbidden(
                "Only admins, project managers and supervisors can view approvals",
                {"endpoint": endpoint},
            )
        return self

    def to_dict(self) -> dict:
        return {
            "accessType": self.kind.value,
            "accessClasses": [c.value for c in self.classes],
            "supervisedAccountIds": sorted(self.supervised_account_ids),
            "managedProjectIds": sorted(self.managed_project_ids),
        }


@dataclass(frozen=True)
class LookupResult(Generic[T]):
    """Outcome of one collaborator sub-lookup: a value or the error it raised."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def or_else(self, default: T) -> T:
        return self.value if self.error is None else default


async def attempt(name: str, call: Awaitable[T]) -> LookupResult[T]:
    """Run one sub-lookup, capturing a failure as a LookupResult."""
    try:
        return LookupResult(value=await call)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        access_lookup_failures_total.labels(lookup=name).inc()
        logger.warning(f"Access sub-lookup {name} failed: {e}")
        return LookupResult(error=e)


class ManagerIndex:
    """
    Inverted index organization -> account -> project ids where the account
    holds the manager role.

    An organization becomes warm after a fan-out in which every lookup
    succeeded. Membership and project events keep it current; invalidate()
    drops it so the next resolution rebuilds it.
    """

    def __init__(self):
        self._managers: Dict[str, Dict[str, Set[str]]] = {}
        # team id -> (organization id, project id)
        self._teams: Dict[str, Tuple[str, str]] = {}

    def is_warm(self, organization_id: str) -> bool:
        return organization_id in self._managers

    def warm(self, organization_id: str, members_by_project: Dict[str, Tuple[Project, List[TeamMember]]]) -> None:
        managers: Dict[str, Set[str]] = {}
        for project_id, (project, members) in members_by_project.items():
            if project.teamId:
                self._teams[project.teamId] = (organization_id, project_id)
            for member in members:
                if MANAGER in member.roles:
                    managers.setdefault(member.accountId, set()).add(project_id)
        self._managers[organization_id] = managers
        logger.info(
            f"Manager index warmed for organization {organization_id}: "
            f"{len(members_by_project)} projects, {len(managers)} managers"
        )

    def managed_projects(self, organization_id: str, account_id: str) -> FrozenSet[str]:
        return frozenset(self._managers.get(organization_id, {}).get(account_id, ()))

    def add_project(self, organization_id: str, project_id: str, team_id: Optional[str]) -> None:
        if team_id:
            self._teams[team_id] = (organization_id, project_id)

    def apply_membership(self, team_id: str, account_id: str, roles: Iterable[str], removed: bool = False) -> bool:
        """
        Apply a membership create/update/delete. Returns False when the team is
        unknown, in which case the owning organization cannot be updated.
        """
        located = self._teams.get(team_id)
        if located is None:
            return False
        organization_id, project_id = located
        if organization_id not in self._managers:
            return True
        projects = self._managers[organization_id].setdefault(account_id, set())
        if not removed and MANAGER in set(roles):
            projects.add(project_id)
        else:
            projects.discard(project_id)
        if not projects:
            del self._managers[organization_id][account_id]
        return True

    def invalidate(self, organization_id: Optional[str] = None) -> None:
        if organization_id is None:
            self._managers.clear()
            self._teams.clear()
        else:
            self._managers.pop(organization_id, None)
            self._teams = {t: v for t, v in self._teams.items() if v[0] != organization_id}


class AccessResolver:
    """Computes Access for a requester from profile and project/team lookups."""

    def __init__(
        self,
        profiles: ProfileLookup,
        projects: ProjectLookup,
        batch_size: int = 10,
        index: Optional[ManagerIndex] = None,
    ):
        self.profiles = profiles
        self.projects = projects
        self.batch_size = max(1, batch_size)
        self.index = index

    async def resolve(
        self,
        account_id: str,
        organization_id: str,
        roles: RoleSet,
        include_finance: bool = True,
    ) -> Access:
        if roles.is_admin:
            return Access(AccessClass.ADMIN, account_id)
        if include_finance and roles.is_finance:
            return Access(AccessClass.FINANCE, account_id)

        supervised, managed = await asyncio.gather(
            self.supervised_accounts(account_id, organization_id),
            self.managed_projects(account_id, organization_id),
        )

        if supervised:
            kind = AccessClass.SUPERVISOR
        elif managed:
            kind = AccessClass.MANAGER
        else:
            kind = AccessClass.NONE

        return Access(
            kind,
            account_id,
            supervised_account_ids=frozenset(supervised),
            managed_project_ids=frozenset(managed),
        )

    async def resolve_within(
        self,
        account_id: str,
        organization_id: str,
        roles: RoleSet,
        timeout: float,
        include_finance: bool = True,
    ) -> Access:
        """resolve() under an overall deadline; expiry is a retryable failure."""
        try:
            return await asyncio.wait_for(
                self.resolve(account_id, organization_id, roles, include_finance=include_finance),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Access resolution timed out after {timeout}s",
                extra={"account_id": account_id, "organization_id": organization_id},
            )
            raise UpstreamUnavailable("Access resolution timed out") from e

    async def supervised_accounts(self, account_id: str, organization_id: str) -> Set[str]:
        result = await attempt(
            "profiles",
            self.profiles.find_profiles_by_supervisor(account_id, organization_id),
        )
        return {p.accountId for p in result.or_else([])}

    async def managed_projects(self, account_id: str, organization_id: str) -> Set[str]:
        if self.index is not None and self.index.is_warm(organization_id):
            return set(self.index.managed_projects(organization_id, account_id))

        listed = await attempt("projects", self.projects.list_projects(organization_id))
        projects = listed.or_else([])

        members_by_project: Dict[str, Tuple[Project, List[TeamMember]]] = {}
        complete = listed.ok
        for i in range(0, len(projects), self.batch_size):
            batch = projects[i:i + self.batch_size]
            results = await asyncio.gather(*(self._members(p) for p in batch))
            for project, result in zip(batch, results):
                if result.ok:
                    members_by_project[project.id] = (project, result.value)
                else:
                    complete = False

        if self.index is not None and complete:
            self.index.warm(organization_id, members_by_project)

        return {
            project_id
            for project_id, (_, members) in members_by_project.items()
            if any(m.accountId == account_id and MANAGER in m.roles for m in members)
        }

    async def team_views(self, account_id: str, organization_id: str, roles: RoleSet) -> List[Access]:
        """
        Roster views open to the requester, in preference order: admin,
        finance, supervisor. Project management grants no roster view.
        """
        views = []
        if roles.is_admin:
            views.append(Access(AccessClass.ADMIN, account_id))
        if roles.is_finance:
            views.append(Access(AccessClass.FINANCE, account_id))
        supervised = await self.supervised_accounts(account_id, organization_id)
        if supervised:
            views.append(Access(
                AccessClass.SUPERVISOR,
                account_id,
                supervised_account_ids=frozenset(supervised),
            ))
        return views

    async def team_views_within(
        self,
        account_id: str,
        organization_id: str,
        roles: RoleSet,
        timeout: float,
    ) -> List[Access]:
        try:
            return await asyncio.wait_for(self.team_views(account_id, organization_id, roles), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Team view resolution timed out after {timeout}s",
                extra={"account_id": account_id, "organization_id": organization_id},
            )
            raise UpstreamUnavailable("Access resolution timed out") from e

    async def _members(self, project: Project) -> LookupResult[List[TeamMember]]:
        if not project.teamId:
            return LookupResult(value=[])
        return await attempt("memberships", self.projects.list_team_members(project.teamId))


def staff_access(account_id: str, roles: RoleSet, staff: UserProfile) -> Access:
    """
    Access to one staff member's history. Unlike the approvals listing, this
    path grants finance read access; project management grants nothing here.
    """
    if roles.is_admin:
        return Access(AccessClass.ADMIN, account_id)
    if roles.is_finance:
        return Access(AccessClass.FINANCE, account_id)
    if staff.supervisorId and staff.supervisorId == account_id:
        return Access(
            AccessClass.SUPERVISOR,
            account_id,
            supervised_account_ids=frozenset({staff.accountId}),
        )
    if staff.accountId == account_id:
        return Access(AccessClass.OWNER, account_id)
    return Access(AccessClass.NONE, account_id)


def can_view(access: Access, timesheet: Timesheet, project_ids: Iterable[str]) -> bool:
    if access.is_unscoped:
        return True
    if timesheet.accountId == access.account_id:
        return True
    if timesheet.accountId in access.supervised_account_ids:
        return True
    return bool(access.managed_project_ids.intersection(project_ids))


def in_approval_scope(access: Access, timesheet: Timesheet, project_ids: Iterable[str]) -> bool:
    """Whether a timesheet belongs on the requester's approvals list."""
    if access.kind == AccessClass.ADMIN:
        return True
    if timesheet.accountId in access.supervised_account_ids:
        return True
    return bool(access.managed_project_ids.intersection(project_ids))


def can_approve(access: Access, timesheet: Timesheet, project_ids: Iterable[str]) -> bool:
    """
    Admins decide anything, supervisors decide for their staff, managers only
    when every project on the timesheet is one they manage. Finance is read-only.
    Only an admin decides on their own timesheet.
    """
    if access.kind == AccessClass.ADMIN:
        return True
    if access.kind in (AccessClass.FINANCE, AccessClass.OWNER, AccessClass.NONE):
        return False
    if timesheet.accountId == access.account_id:
        return False
    if timesheet.accountId in access.supervised_account_ids:
        return True
    project_ids = set(project_ids)
    return bool(project_ids) and project_ids <= access.managed_project_ids
