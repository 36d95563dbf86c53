from datetime import datetime
from unittest.mock import patch

from identifiers import date_key
from repository import ProjectRepository


def create(client, payload, **overrides):
    body = dict(payload, **overrides)
    response = client.post("/api/projects", json=body)
    assert response.status_code == 201, response.json()
    return response.json()


def test_create_project_assigns_identifiers_and_total(client, project_payload):
    project = create(client, project_payload)

    assert len(project["id"]) == 32
    assert project["numberOrder"] == f"FM-{date_key()}-001"
    assert project["totalPrice"] == 900000
    assert project["status"] == "to do"
    assert project["comments"] == []
    assert project["createdAt"] == project["updatedAt"]
    assert "_id" not in project


def test_order_numbers_increase_within_the_day(client, project_payload):
    create(client, project_payload)
    second = create(client, project_payload)
    assert second["numberOrder"] == f"FM-{date_key()}-002"


def test_next_number_preview(client, project_payload):
    create(client, project_payload)
    response = client.get("/api/projects/next-number")
    assert response.json() == {"numberOrder": f"FM-{date_key()}-002"}


def test_caller_supplied_total_is_ignored(client, project_payload):
    project = create(client, project_payload, totalPrice=1, discount=900000)
    assert project["totalPrice"] == 100000


def test_discount_larger_than_subtotal_floors_at_zero(client, project_payload):
    project = create(client, project_payload, price=100, quantity=1, discount=500)
    assert project["totalPrice"] == 0


def test_create_project_validation_lists_every_field(client, project_payload):
    body = dict(project_payload, price=-5)
    del body["projectName"]
    response = client.post("/api/projects", json=body)

    assert response.status_code == 400
    data = response.json()
    assert data["kind"] == "ValidationFailed"
    fields = {d["field"] for d in data["details"]}
    assert {"projectName", "price"} <= fields


def test_invalid_status_is_rejected(client, project_payload):
    response = client.post("/api/projects", json=dict(project_payload, status="archived"))
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "status"


def test_duplicate_order_number_conflicts(client, project_payload):
    create(client, project_payload, numberOrder="FM-010125-001")
    response = client.post("/api/projects", json=dict(project_payload, numberOrder="FM-010125-001"))

    assert response.status_code == 409
    assert response.json()["kind"] == "Conflict"
    assert "numberOrder" in response.json()["error"]
    assert len(client.get("/api/projects").json()) == 1


def test_generated_order_number_retries_on_collision(client, project_payload):
    taken = create(client, project_payload, numberOrder="FM-010125-001")["numberOrder"]
    with patch.object(ProjectRepository, "next_order_number", side_effect=[taken, "FM-010125-002"]):
        project = create(client, project_payload)
    assert project["numberOrder"] == "FM-010125-002"


def test_generated_order_number_exhaustion(client, project_payload):
    taken = create(client, project_payload, numberOrder="FM-010125-001")["numberOrder"]
    with patch.object(ProjectRepository, "next_order_number", return_value=taken):
        response = client.post("/api/projects", json=project_payload)
    assert response.status_code == 503
    assert response.json()["kind"] == "IdGenerationExhausted"


def test_list_is_newest_first(client, db):
    for i, day in enumerate([3, 1, 2]):
        db["project"].insert_one({"id": f"p{i}", "numberOrder": f"FM-0{day}0125-001",
                                  "createdAt": datetime(2025, 1, day)})
    ids = [p["id"] for p in client.get("/api/projects").json()]
    assert ids == ["p0", "p2", "p1"]


def test_get_unknown_project(client):
    response = client.get("/api/projects/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Project not found", "kind": "NotFound"}


def test_update_recomputes_total_and_keeps_identity(client, project_payload):
    project = create(client, project_payload)
    response = client.put(f"/api/projects/{project['id']}",
                          json={"quantity": 3, "id": "hijack", "createdAt": "2000-01-01T00:00:00"})

    assert response.status_code == 200
    updated = response.json()
    assert updated["id"] == project["id"]
    assert updated["createdAt"] == project["createdAt"]
    assert updated["totalPrice"] == 1400000
    assert updated["updatedAt"] > project["updatedAt"]


def test_update_twice_only_moves_updated_at(client, project_payload):
    project = create(client, project_payload)
    change = {"status": "in review", "discount": 0}

    first = client.put(f"/api/projects/{project['id']}", json=change).json()
    second = client.put(f"/api/projects/{project['id']}", json=change).json()

    assert second["updatedAt"] > first["updatedAt"]
    first.pop("updatedAt")
    second.pop("updatedAt")
    assert first == second


def test_update_rejects_invalid_values(client, project_payload):
    project = create(client, project_payload)
    response = client.put(f"/api/projects/{project['id']}", json={"quantity": 0})
    assert response.status_code == 400
    assert client.get(f"/api/projects/{project['id']}").json()["quantity"] == 2


def test_update_to_existing_order_number_conflicts(client, project_payload):
    create(client, project_payload, numberOrder="FM-010125-001")
    other = create(client, project_payload, numberOrder="FM-010125-002")
    response = client.put(f"/api/projects/{other['id']}", json={"numberOrder": "FM-010125-001"})
    assert response.status_code == 409
    assert response.json()["kind"] == "Conflict"


def test_update_unknown_project(client):
    response = client.put("/api/projects/nope", json={"status": "done"})
    assert response.status_code == 404


def test_delete_returns_removed_project(client, project_payload):
    project = create(client, project_payload)
    response = client.delete(f"/api/projects/{project['id']}")

    assert response.status_code == 200
    assert response.json()["project"]["id"] == project["id"]
    assert client.get(f"/api/projects/{project['id']}").status_code == 404
    assert client.delete(f"/api/projects/{project['id']}").status_code == 404


def test_dashboard_stats(client, project_payload):
    for status, price in [("done", 100), ("to do", 50), ("in progress", 75), ("done", 25)]:
        create(client, project_payload, status=status, price=price, quantity=1, discount=0)

    response = client.get("/api/projects/stats/dashboard")
    assert response.json() == {
        "total": 4,
        "ongoing": 2,
        "completed": 2,
        "ongoingRevenue": 125,
        "completedRevenue": 125,
    }
