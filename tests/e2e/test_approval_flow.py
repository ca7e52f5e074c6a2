"""
E2E approval flow over HTTP with the in-memory backend: a week is logged,
submitted, rejected, corrected, resubmitted and approved; a manager promoted
through a membership webhook gains approval rights without a restart.
"""
import pytest
from fastapi.testclient import TestClient

from timekeeper.access import ManagerIndex
from timekeeper.deps import get_index, get_service
from timekeeper.integrations.memory import MemoryBackend
from timekeeper.main import app
from timekeeper.routes import webhooks_appwrite
from timekeeper.service import TimesheetService


@pytest.fixture
def env():
    backend = MemoryBackend()
    backend.add_user("sup1", "org1")
    backend.add_user("staff1", "org1", supervisor_id="sup1")
    backend.add_user("lead1", "org1")
    backend.add_project("p1", "org1", team_id="t1", name="Apollo", members={"staff1": ["member"]})
    index = ManagerIndex()
    service = TimesheetService(backend, index=index)

    webhooks_appwrite._event_cache.clear()
    app.dependency_overrides[get_service] = lambda: service
    app.dependency_overrides[get_index] = lambda: index
    yield backend, TestClient(app)
    app.dependency_overrides.clear()


def patch(client, ts_id, action, requester, comment=None):
    return client.patch(
        f"/timesheets/{ts_id}",
        json={"action": action, "requesterId": requester, "comment": comment},
    )


def test_reject_correct_resubmit_approve(env):
    backend, client = env

    saved = client.post("/timesheets", json={
        "accountId": "staff1",
        "organizationId": "org1",
        "weekStart": "2024-01-01",
        "entries": [
            {"projectId": "p1", "workDate": f"2024-01-0{d}", "hours": 8, "billable": d != 5}
            for d in range(1, 5)
        ],
    }).json()["data"]
    ts_id = saved["timesheet"]["id"]
    assert saved["timesheet"]["status"] == "draft"

    submitted = patch(client, ts_id, "submit", "staff1").json()["data"]
    assert submitted["timesheet"]["status"] == "submitted"
    assert submitted["summary"]["totalHours"] == 32.0

    rejected = patch(client, ts_id, "reject", "sup1", "Missing Friday").json()["data"]
    assert rejected["timesheet"]["status"] == "rejected"
    assert rejected["timesheet"]["rejectionComments"] == "Missing Friday"

    # rejected timesheets are editable again
    added = client.post("/timesheets", json={
        "accountId": "staff1",
        "organizationId": "org1",
        "weekStart": "2024-01-01",
        "entries": [{"projectId": "p1", "workDate": "2024-01-05", "hours": 8, "billable": False}],
    })
    assert added.status_code == 200

    resubmitted = patch(client, ts_id, "submit", "staff1").json()["data"]
    assert resubmitted["timesheet"]["status"] == "submitted"
    assert resubmitted["timesheet"]["rejectionComments"] is None
    assert resubmitted["summary"] == {
        "totalHours": 40.0,
        "billableHours": 32.0,
        "nonBillableHours": 8.0,
        "entriesCount": 5,
    }

    queue = client.get("/timesheets/approvals", params={"requesterId": "sup1", "organizationId": "org1"}).json()
    assert [t["timesheet"]["id"] for t in queue["data"]["timesheets"]] == [ts_id]

    approved = patch(client, ts_id, "approve", "sup1", "Looks good").json()["data"]
    assert approved["timesheet"]["status"] == "approved"
    assert approved["timesheet"]["approvedBy"] == "sup1"
    assert approved["timesheet"]["approvalComments"] == "Looks good"

    assert patch(client, ts_id, "submit", "staff1").status_code == 409


def test_membership_webhook_grants_manager_rights(env):
    backend, client = env

    ts_id = client.post("/timesheets", json={
        "accountId": "staff1",
        "organizationId": "org1",
        "weekStart": "2024-01-08",
        "entries": [{"projectId": "p1", "workDate": "2024-01-08", "hours": 7.5}],
    }).json()["data"]["timesheet"]["id"]
    patch(client, ts_id, "submit", "staff1")

    # lead1 has no access yet; this resolution warms the index
    denied = client.get("/timesheets/approvals", params={"requesterId": "lead1", "organizationId": "org1"})
    assert denied.status_code == 403

    # Promotion arrives as a webhook; the backing store changes too
    backend.projects.teams["t1"].append(backend.projects.teams["t1"][0].model_copy(
        update={"accountId": "lead1", "roles": {"manager"}}
    ))
    hook = client.post(
        "/webhooks/appwrite",
        json={"$id": "m2", "$updatedAt": "2024-01-09T10:00:00.000+00:00", "userId": "lead1", "teamId": "t1",
              "roles": ["manager"]},
        headers={"X-Appwrite-Webhook-Events": "teams.t1.memberships.m2.create"},
    )
    assert hook.json()["data"]["applied"] is True

    queue = client.get("/timesheets/approvals", params={"requesterId": "lead1", "organizationId": "org1"}).json()
    assert queue["data"]["accessType"] == "manager"
    assert queue["data"]["timesheets"][0]["canApprove"] is True

    assert patch(client, ts_id, "approve", "lead1", "ok").status_code == 200
