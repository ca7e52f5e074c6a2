"""
Tests for the Appwrite backend adapters: document mapping and error translation.
"""
import json
from datetime import date

import httpx
import pytest
import respx

from timekeeper.errors import NotFound, UpstreamUnavailable
from timekeeper.integrations.appwrite import AppwriteBackend
from timekeeper.integrations.appwrite_client import AppwriteClient
from timekeeper.models import Timesheet, TimesheetFilters, TimesheetStatus

BASE = "https://appwrite.test/v1"
DB = f"{BASE}/databases/db1/collections"


@pytest.fixture
def backend():
    client = AppwriteClient(endpoint=BASE, project_id="proj1", api_key="key1", database_id="db1", max_retries=1)
    return AppwriteBackend(client=client)


def queries(route):
    return [json.loads(q) for q in route.calls.last.request.url.params.get_list("queries[]")]


@pytest.mark.asyncio
@respx.mock
async def test_role_labels(backend):
    respx.get(f"{BASE}/users/u1").mock(
        return_value=httpx.Response(200, json={"$id": "u1", "labels": ["Admin", " staff "]})
    )
    roles = await backend.identity.get_role_labels("u1")
    assert roles.is_admin
    assert roles.is_staff
    assert roles.as_list() == ["admin", "staff"]


@pytest.mark.asyncio
@respx.mock
async def test_find_timesheet_maps_document(backend):
    route = respx.get(f"{DB}/pms_timesheets/documents").mock(
        return_value=httpx.Response(200, json={"total": 1, "documents": [{
            "$id": "ts1",
            "$permissions": [],
            "accountId": "u1",
            "organizationId": "org1",
            "weekStart": "2024-01-01T00:00:00.000+00:00",
            "status": None,
        }]})
    )

    ts = await backend.timesheets.find("u1", "2024-01-01")
    assert ts.id == "ts1"
    assert ts.weekStart == date(2024, 1, 1)
    assert ts.status == TimesheetStatus.DRAFT
    sent = queries(route)
    assert {"method": "equal", "attribute": "weekStart", "values": ["2024-01-01"]} in sent


@pytest.mark.asyncio
@respx.mock
async def test_list_by_org_builds_filters(backend):
    route = respx.get(f"{DB}/pms_timesheets/documents").mock(
        return_value=httpx.Response(200, json={"total": 0, "documents": []})
    )

    await backend.timesheets.list_by_org("org1", TimesheetFilters(
        statuses=[TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED],
        weekFrom=date(2024, 1, 1),
        accountIds=["u1", "u2"],
        limit=10,
        offset=20,
    ))
    sent = queries(route)
    assert {"method": "equal", "attribute": "status", "values": ["submitted", "approved"]} in sent
    assert {"method": "greaterThanEqual", "attribute": "weekStart", "values": ["2024-01-01"]} in sent
    assert {"method": "equal", "attribute": "accountId", "values": ["u1", "u2"]} in sent
    assert {"method": "offset", "values": [20]} in sent


@pytest.mark.asyncio
async def test_list_by_org_with_no_accounts_skips_request(backend):
    assert await backend.timesheets.list_by_org("org1", TimesheetFilters(accountIds=[])) == []


@pytest.mark.asyncio
@respx.mock
async def test_projects_read_team_id(backend):
    respx.get(f"{DB}/pms_projects/documents").mock(
        return_value=httpx.Response(200, json={"total": 1, "documents": [
            {"$id": "p1", "organizationId": "org1", "projectTeamId": "t1", "name": "Apollo"},
        ]})
    )
    (project,) = await backend.projects.list_projects("org1")
    assert project.teamId == "t1"


@pytest.mark.asyncio
@respx.mock
async def test_create_timesheet_sets_owner_permissions(backend):
    route = respx.post(f"{DB}/pms_timesheets/documents").mock(
        return_value=httpx.Response(201, json={
            "$id": "ts1", "accountId": "u1", "organizationId": "org1", "weekStart": "2024-01-01", "status": "draft",
        })
    )
    await backend.timesheets.create(Timesheet(id="ts1", accountId="u1", organizationId="org1", weekStart=date(2024, 1, 1)))

    body = json.loads(route.calls.last.request.content)
    assert body["documentId"] == "ts1"
    assert body["data"]["weekStart"] == "2024-01-01"
    assert body["data"]["status"] == "draft"
    assert 'update("user:u1")' in body["permissions"]


@pytest.mark.asyncio
@respx.mock
async def test_missing_document_is_not_found(backend):
    respx.get(f"{DB}/pms_timesheet_entries/documents/e1").mock(return_value=httpx.Response(404))
    with pytest.raises(NotFound):
        await backend.entries.get("e1")


@pytest.mark.asyncio
@respx.mock
async def test_server_failure_is_upstream_unavailable(backend):
    respx.get(f"{BASE}/teams/t1/memberships").mock(return_value=httpx.Response(500))
    with pytest.raises(UpstreamUnavailable):
        await backend.projects.list_team_members("t1")


@pytest.mark.asyncio
@respx.mock
async def test_count_by_org_reads_total(backend):
    route = respx.get(f"{DB}/pms_timesheets/documents").mock(
        return_value=httpx.Response(200, json={"total": 42, "documents": [{"$id": "ts1"}]})
    )
    total = await backend.timesheets.count_by_org("org1", TimesheetFilters(
        status=TimesheetStatus.SUBMITTED,
        limit=10,
        offset=20,
    ))
    assert total == 42
    sent = queries(route)
    assert {"method": "equal", "attribute": "status", "values": ["submitted"]} in sent
    assert {"method": "limit", "values": [1]} in sent
    assert not any(q["method"] == "offset" for q in sent)


@pytest.mark.asyncio
async def test_count_with_no_accounts_skips_request(backend):
    assert await backend.timesheets.count_by_org("org1", TimesheetFilters(accountIds=[])) == 0


@pytest.mark.asyncio
@respx.mock
async def test_list_profiles_filters(backend):
    route = respx.get(f"{DB}/pms_users/documents").mock(
        return_value=httpx.Response(200, json={"total": 1, "documents": [
            {"$id": "doc1", "accountId": "u1", "organizationId": "org1", "department": "Ops"},
        ]})
    )
    (profile,) = await backend.profiles.list_profiles("org1", account_ids=["u1", "u2"], department="Ops")
    assert profile.accountId == "u1"
    sent = queries(route)
    assert {"method": "equal", "attribute": "accountId", "values": ["u1", "u2"]} in sent
    assert {"method": "equal", "attribute": "department", "values": ["Ops"]} in sent
