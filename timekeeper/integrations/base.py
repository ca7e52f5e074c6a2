from __future__ import annotations
from typing import Any, Dict, List, Optional
from abc import ABC, abstractmethod

from timekeeper.models import (
    Project,
    TeamMember,
    Timesheet,
    TimesheetEntry,
    TimesheetFilters,
    UserProfile,
)
from timekeeper.roles import RoleSet

_registry: dict[str, type['Backend']] = {}

def register_backend(name: str):
    def deco(cls):
        _registry[name] = cls
        return cls
    return deco

def get_backend(name: str, **kwargs) -> 'Backend':
    if name not in _registry:
        raise ValueError(f"Unknown backend: {name} (available: {', '.join(list_backends())})")
    return _registry[name](**kwargs)

def list_backends() -> list[str]:
    return sorted(_registry.keys())


class IdentityLookup(ABC):
    @abstractmethod
    async def get_role_labels(self, account_id: str) -> RoleSet:
        ...


class ProfileLookup(ABC):
    @abstractmethod
    async def find_profiles_by_supervisor(self, account_id: str, organization_id: str) -> List[UserProfile]:
        ...

    @abstractmethod
    async def get_profile(self, account_id: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    async def get_profiles(self, account_ids: List[str]) -> List[UserProfile]:
        ...

    @abstractmethod
    async def list_profiles(
        self,
        organization_id: str,
        account_ids: Optional[List[str]] = None,
        department: Optional[str] = None,
    ) -> List[UserProfile]:
        ...


class ProjectLookup(ABC):
    @abstractmethod
    async def list_projects(self, organization_id: str) -> List[Project]:
        ...

    @abstractmethod
    async def list_team_members(self, team_id: str) -> List[TeamMember]:
        ...


class TimesheetStore(ABC):
    @abstractmethod
    async def find(self, account_id: str, week_start) -> Optional[Timesheet]:
        ...

    @abstractmethod
    async def get(self, timesheet_id: str) -> Timesheet:
        """Raises NotFound."""

    @abstractmethod
    async def create(self, timesheet: Timesheet) -> Timesheet:
        ...

    @abstractmethod
    async def update(self, timesheet_id: str, fields: Dict[str, Any]) -> Timesheet:
        ...

    @abstractmethod
    async def list_by_org(self, organization_id: str, filters: TimesheetFilters) -> List[Timesheet]:
        ...

    @abstractmethod
    async def count_by_org(self, organization_id: str, filters: TimesheetFilters) -> int:
        """Rows matching filters, ignoring limit and offset."""


class EntryStore(ABC):
    @abstractmethod
    async def get(self, entry_id: str) -> TimesheetEntry:
        """Raises NotFound."""

    @abstractmethod
    async def list_by_timesheet(self, timesheet_id: str) -> List[TimesheetEntry]:
        ...

    @abstractmethod
    async def create(self, entry: TimesheetEntry) -> TimesheetEntry:
        ...

    @abstractmethod
    async def update(self, entry_id: str, fields: Dict[str, Any]) -> TimesheetEntry:
        ...

    @abstractmethod
    async def delete(self, entry_id: str) -> None:
        ...


class Backend(ABC):
    """A BaaS deployment exposing every collaborator the workflow needs."""

    identity: IdentityLookup
    profiles: ProfileLookup
    projects: ProjectLookup
    timesheets: TimesheetStore
    entries: EntryStore

    async def ping(self) -> Dict[str, Any]:
        return {"backend": "configured"}

    async def aclose(self) -> None:
        return None
