from app.models.enums import UserRole
from app.policies.rbac import Principal

ENGINEER = Principal(user_id=10, role=UserRole.ENGINEER, display_name="Eng. Sara")
SUPERVISOR = Principal(user_id=20, role=UserRole.SUPERVISOR, display_name="Sup. Huda")

API = "/api/v1/checklist"


def test_batch_engineer_approval_reports_per_item(client, headers, make_project, make_item):
    project = make_project()
    done = make_item(project, order=1, is_completed=True)
    pending = make_item(project, order=2)

    r = client.post(f"{API}/approve/engineer", json={"items": [done.id, pending.id]}, headers=headers(ENGINEER))

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["applied"] == 1
    assert body["failed"] == 1

    ok, failed = body["data"]
    assert ok["item_id"] == done.id
    assert ok["success"] is True
    assert ok["item"]["engineer_approvals"][0]["engineer_name"] == "Eng. Sara"
    assert failed["item_id"] == pending.id
    assert failed["success"] is False
    assert failed["error"]["code"] == "PRECONDITION_NOT_MET"


def test_supervisor_chain_over_http(client, headers, make_project, make_item):
    item = make_item(make_project(), is_completed=True)
    client.post(f"{API}/approve/engineer", json={"items": [item.id]}, headers=headers(ENGINEER))

    r = client.post(f"{API}/approve/supervisor", json={"items": [item.id], "level": 2}, headers=headers(SUPERVISOR))
    assert r.json()["data"][0]["error"]["code"] == "PRECONDITION_NOT_MET"

    r = client.post(f"{API}/approve/supervisor", json={"items": [item.id], "level": 1}, headers=headers(SUPERVISOR))
    data = r.json()["data"][0]
    assert data["success"] is True
    assert data["item"]["supervisor_1_approved_by"]["user_id"] == SUPERVISOR.user_id
    assert data["item"]["supervisor_1_approved_by"]["name"] == "Sup. Huda"
    assert data["item"]["supervisor_2_approved_by"] is None

    r = client.post(
        f"{API}/items/{item.id}/revoke-supervisor-approval", json={"level": 1}, headers=headers(SUPERVISOR),
    )
    assert r.status_code == 200
    assert r.json()["data"]["supervisor_1_approved_by"] is None


def test_level_out_of_range_is_400(client, headers, make_project, make_item):
    item = make_item(make_project(), is_completed=True)
    r = client.post(f"{API}/approve/supervisor", json={"items": [item.id], "level": 5}, headers=headers(SUPERVISOR))
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_engineer_cannot_supervisor_approve(client, headers, make_project, make_item):
    item = make_item(make_project(), is_completed=True)
    r = client.post(f"{API}/approve/supervisor", json={"items": [item.id], "level": 1}, headers=headers(ENGINEER))
    assert r.status_code == 403


def test_toggle_and_withdraw(client, headers, make_project, make_item):
    item = make_item(make_project())

    r = client.post(f"{API}/items/{item.id}/toggle-completion", json={"is_completed": True}, headers=headers(ENGINEER))
    assert r.json()["data"]["is_completed"] is True

    client.post(f"{API}/approve/engineer", json={"items": [item.id]}, headers=headers(ENGINEER))

    r = client.delete(f"{API}/approve/engineer/{item.id}", headers=headers(ENGINEER))
    assert r.status_code == 200, r.text
    assert r.json()["data"]["engineer_approvals"] == []
    assert r.json()["data"]["is_completed"] is False


def test_generate_phase_and_statistics(client, headers, make_project, make_template):
    make_template("DD", order=1)
    make_template("DD", order=2)
    project = make_project()

    r = client.post(f"{API}/projects/{project.id}/phases", json={"phase_name": "DD"}, headers=headers(SUPERVISOR))
    assert r.status_code == 201, r.text
    items = r.json()["data"]
    assert len(items) == 2

    client.post(f"{API}/items/{items[0]['id']}/toggle-completion", json={"is_completed": True}, headers=headers(ENGINEER))

    r = client.get(f"{API}/projects/{project.id}/phases/DD/statistics", headers=headers(SUPERVISOR))
    stats = r.json()["data"]
    assert stats["total_tasks"] == 2
    assert stats["completed_tasks"] == 1
    assert stats["completion_percentage"] == 50.0

    r = client.post(f"{API}/projects/{project.id}/phases", json={"phase_name": "DD"}, headers=headers(SUPERVISOR))
    assert r.status_code == 400


def test_custom_item_notes_and_delete(client, headers, make_project):
    project = make_project()

    r = client.post(
        f"{API}/projects/{project.id}/items",
        json={"phase_name": "BOQ", "task_title_ar": "جدول الكميات", "display_order": 1},
        headers=headers(SUPERVISOR),
    )
    assert r.status_code == 201, r.text
    item_id = r.json()["data"]["id"]

    r = client.put(f"{API}/items/{item_id}/client-notes", json={"client_notes": "ok"}, headers=headers(SUPERVISOR))
    assert r.json()["data"]["client_notes"] == "ok"

    r = client.delete(f"{API}/items/{item_id}", headers=headers(SUPERVISOR))
    assert r.status_code == 200

    r = client.delete(f"{API}/items/{item_id}", headers=headers(SUPERVISOR))
    assert r.status_code == 404
