"""
Tests for the Appwrite REST client.
"""
import json

import httpx
import pytest
import respx

from timekeeper.integrations.appwrite_client import AppwriteClient, BackendAPIError
from timekeeper.integrations.appwrite_types import Query

BASE = "https://appwrite.test/v1"
DOCS = f"{BASE}/databases/db1/collections/pms_timesheets/documents"


@pytest.fixture
def appwrite_client():
    return AppwriteClient(
        endpoint=BASE,
        project_id="proj1",
        api_key="key1",
        database_id="db1",
        timeout=5.0,
        max_retries=2,
    )


def test_requires_credentials():
    with pytest.raises(ValueError):
        AppwriteClient(endpoint=BASE, project_id="proj1", api_key="")


@pytest.mark.asyncio
@respx.mock
async def test_get_user_sends_auth_headers(appwrite_client):
    route = respx.get(f"{BASE}/users/u1").mock(
        return_value=httpx.Response(200, json={"$id": "u1", "name": "Sam", "labels": ["staff", "admin"]})
    )

    user = await appwrite_client.get_user("u1")
    assert user.id == "u1"
    assert user.labels == ["staff", "admin"]
    request = route.calls.last.request
    assert request.headers["X-Appwrite-Project"] == "proj1"
    assert request.headers["X-Appwrite-Key"] == "key1"


@pytest.mark.asyncio
@respx.mock
async def test_list_documents_passes_queries(appwrite_client):
    route = respx.get(DOCS).mock(
        return_value=httpx.Response(200, json={
            "total": 1,
            "documents": [{"$id": "ts1", "$collectionId": "pms_timesheets", "accountId": "u1", "status": "draft"}],
        })
    )

    result = await appwrite_client.list_documents("pms_timesheets", [Query.equal("accountId", "u1"), Query.limit(1)])
    assert result.total == 1
    assert result.documents[0].id == "ts1"
    assert result.documents[0].data() == {"accountId": "u1", "status": "draft"}

    sent = route.calls.last.request.url.params.get_list("queries[]")
    assert json.loads(sent[0]) == {"method": "equal", "attribute": "accountId", "values": ["u1"]}
    assert json.loads(sent[1]) == {"method": "limit", "values": [1]}


@pytest.mark.asyncio
@respx.mock
async def test_update_document_wraps_data(appwrite_client):
    route = respx.patch(f"{DOCS}/ts1").mock(
        return_value=httpx.Response(200, json={"$id": "ts1", "status": "submitted"})
    )

    doc = await appwrite_client.update_document("pms_timesheets", "ts1", {"status": "submitted"})
    assert doc.data()["status"] == "submitted"
    assert json.loads(route.calls.last.request.content) == {"data": {"status": "submitted"}}


@pytest.mark.asyncio
@respx.mock
async def test_delete_document_returns_none(appwrite_client):
    respx.delete(f"{DOCS}/ts1").mock(return_value=httpx.Response(204))
    assert await appwrite_client.delete_document("pms_timesheets", "ts1") is None


@pytest.mark.asyncio
@respx.mock
async def test_not_found_error(appwrite_client):
    respx.get(f"{DOCS}/missing").mock(return_value=httpx.Response(404, json={"message": "Document not found"}))

    with pytest.raises(BackendAPIError) as exc_info:
        await appwrite_client.get_document("pms_timesheets", "missing")
    assert exc_info.value.code == "not_found"
    assert exc_info.value.status_code == 404
    assert not exc_info.value.retryable


@pytest.mark.asyncio
@respx.mock
async def test_unauthorized_error(appwrite_client):
    respx.get(f"{BASE}/users/u1").mock(return_value=httpx.Response(401, json={"message": "Unauthorized"}))

    with pytest.raises(BackendAPIError) as exc_info:
        await appwrite_client.get_user("u1")
    assert exc_info.value.code == "unauthorized"


@pytest.mark.asyncio
@respx.mock
async def test_bad_request_maps_to_validation_error(appwrite_client):
    respx.post(DOCS).mock(return_value=httpx.Response(400, json={"message": "Invalid document structure"}))

    with pytest.raises(BackendAPIError) as exc_info:
        await appwrite_client.create_document("pms_timesheets", "ts1", {"bogus": 1})
    assert exc_info.value.code == "validation_error"
    assert "Invalid document structure" in exc_info.value.message


@pytest.mark.asyncio
@respx.mock
async def test_rate_limit_retry(appwrite_client):
    respx.get(f"{BASE}/teams/t1/memberships").mock(
        side_effect=[
            httpx.Response(429, json={"message": "Rate limit"}),
            httpx.Response(200, json={
                "total": 1,
                "memberships": [{"$id": "m1", "userId": "u1", "teamId": "t1", "roles": ["manager"]}],
            }),
        ]
    )

    result = await appwrite_client.list_memberships("t1")
    assert result.memberships[0].roles == ["manager"]


@pytest.mark.asyncio
@respx.mock
async def test_server_error_exhausts_retries(appwrite_client):
    route = respx.get(f"{BASE}/users/u1").mock(return_value=httpx.Response(503))

    with pytest.raises(BackendAPIError) as exc_info:
        await appwrite_client.get_user("u1")
    assert exc_info.value.code == "upstream_error"
    assert exc_info.value.retryable
    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_timeout_becomes_upstream_error(appwrite_client):
    respx.get(f"{BASE}/users/u1").mock(side_effect=httpx.ConnectTimeout("timed out"))

    with pytest.raises(BackendAPIError) as exc_info:
        await appwrite_client.get_user("u1")
    assert exc_info.value.code == "upstream_error"
