"""
Role labels attached to an account by the identity service.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

ADMIN = "admin"
FINANCE = "finance"
STAFF = "staff"
CLIENT = "client"
SUPERVISOR = "supervisor"

# Project team role, not an account label
MANAGER = "manager"


@dataclass(frozen=True)
class RoleSet:
    """Immutable set of role labels, fetched per request and passed explicitly."""

    labels: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, labels: Iterable[str] | None) -> "RoleSet":
        return cls(frozenset(l.strip().lower() for l in (labels or []) if l and l.strip()))

    def __contains__(self, label: str) -> bool:
        return label in self.labels

    @property
    def is_admin(self) -> bool:
        return ADMIN in self.labels

    @property
    def is_finance(self) -> bool:
        return FINANCE in self.labels

    @property
    def is_staff(self) -> bool:
        # Admins carry staff rights whether or not the staff label is set
        return STAFF in self.labels or ADMIN in self.labels

    @property
    def is_client(self) -> bool:
        return CLIENT in self.labels

    @property
    def is_supervisor(self) -> bool:
        return SUPERVISOR in self.labels

    def as_list(self) -> list[str]:
        return sorted(self.labels)
