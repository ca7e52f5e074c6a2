"""
Pydantic models for the Appwrite REST API.
Minimal subset used by the timesheet workflow.
"""
import json
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class AppwriteUser(BaseModel):
    """Account record from the Users API."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="$id")
    name: Optional[str] = None
    email: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    status: Optional[bool] = None


class Document(BaseModel):
    """A database document: system attributes plus free-form data."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="$id")
    collectionId: Optional[str] = Field(default=None, alias="$collectionId")
    createdAt: Optional[str] = Field(default=None, alias="$createdAt")
    updatedAt: Optional[str] = Field(default=None, alias="$updatedAt")

    def data(self) -> Dict[str, Any]:
        """User attributes with the $-prefixed system attributes stripped."""
        return {k: v for k, v in (self.model_extra or {}).items() if not k.startswith("$")}


class DocumentList(BaseModel):
    total: int = 0
    documents: List[Document] = Field(default_factory=list)


class Membership(BaseModel):
    """Team membership."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="$id")
    userId: str
    teamId: str
    roles: List[str] = Field(default_factory=list)
    confirm: Optional[bool] = None


class MembershipList(BaseModel):
    total: int = 0
    memberships: List[Membership] = Field(default_factory=list)


class Query:
    """Query strings in the JSON form accepted by Appwrite 1.5+."""

    @staticmethod
    def _q(method: str, attribute: Optional[str] = None, values: Optional[list] = None) -> str:
        body: Dict[str, Any] = {"method": method}
        if attribute is not None:
            body["attribute"] = attribute
        if values is not None:
            body["values"] = values
        return json.dumps(body)

    @staticmethod
    def equal(attribute: str, value: Any) -> str:
        values = value if isinstance(value, list) else [value]
        return Query._q("equal", attribute, values)

    @staticmethod
    def greater_than_equal(attribute: str, value: Any) -> str:
        return Query._q("greaterThanEqual", attribute, [value])

    @staticmethod
    def less_than_equal(attribute: str, value: Any) -> str:
        return Query._q("lessThanEqual", attribute, [value])

    @staticmethod
    def order_asc(attribute: str) -> str:
        return Query._q("orderAsc", attribute)

    @staticmethod
    def order_desc(attribute: str) -> str:
        return Query._q("orderDesc", attribute)

    @staticmethod
    def limit(n: int) -> str:
        return Query._q("limit", values=[n])

    @staticmethod
    def offset(n: int) -> str:
        return Query._q("offset", values=[n])
