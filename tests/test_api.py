"""Tests for the REST endpoints."""

from fastapi.testclient import TestClient

from nuclibook import api_main
from nuclibook.db import db_session
from nuclibook.errors import StoreUnavailable
from nuclibook.models import Therapy
from nuclibook.services import disable_staff, staff_flat


def headers(staff_id: int) -> dict[str, str]:
    return {"X-Staff-Id": str(staff_id)}


def test_list_therapies(client: TestClient, therapy_id: int) -> None:
    response = client.get("/api/therapies")

    assert response.status_code == 200
    therapies = response.json()
    assert len(therapies) == 1
    assert therapies[0]["id"] == str(therapy_id)
    assert therapies[0]["CUSTOM:booking-pattern-sections"] == "CUSTOM:[[1,10,10],[0,5,15]]"


def test_get_therapy_not_found(client: TestClient) -> None:
    response = client.get("/api/therapies/404")

    assert response.status_code == 404
    assert "404" in response.json()["detail"]


def test_create_therapy(client: TestClient, actor_id: int, tracer_id: int, camera_type_ids: dict[str, int]) -> None:
    payload = {
        "name": "Renal Scan",
        "tracer_id": tracer_id,
        "tracer_dose": "100 MBq",
        "camera_type_ids": [camera_type_ids["A"]],
        "sections": [{"busy": True, "min_length": 15, "max_length": 20}],
        "questions": ["Are you pregnant?"],
    }

    response = client.post("/api/therapies", json=payload, headers=headers(actor_id))

    assert response.status_code == 200
    therapy_id = response.json()["id"]
    therapy = client.get(f"/api/therapies/{therapy_id}").json()
    assert therapy["camera-type-summary"] == "A"
    assert therapy["advice"].endswith("is 15-20 mins booking.")


def test_mutation_requires_staff_header(client: TestClient, actor_id: int) -> None:
    response = client.post("/api/tracers", json={"name": "FDG", "order_time": 1})

    assert response.status_code == 422


def test_disabled_staff_is_forbidden(client: TestClient, actor_id: int) -> None:
    role_id = staff_flat()[0]["role-id"]
    response = client.post(
        "/api/staff", json={"username": "jdoe", "name": "Jane Doe", "role_id": role_id}, headers=headers(actor_id)
    )
    staff_id = response.json()["id"]
    disable_staff(actor_id, staff_id)

    response = client.post("/api/camera-types", json={"label": "PET-CT"}, headers=headers(staff_id))

    assert response.status_code == 403


def test_duplicate_username_conflict(client: TestClient, actor_id: int) -> None:
    role_id = staff_flat()[0]["role-id"]

    response = client.post(
        "/api/staff", json={"username": "admin", "name": "Again", "role_id": role_id}, headers=headers(actor_id)
    )

    assert response.status_code == 409


def test_invalid_section_conflict(client: TestClient, actor_id: int, tracer_id: int) -> None:
    payload = {"name": "Bad", "tracer_id": tracer_id, "sections": [{"busy": True, "min_length": 30, "max_length": 10}]}

    response = client.post("/api/therapies", json=payload, headers=headers(actor_id))

    assert response.status_code == 409


def test_disable_and_delete_therapy(client: TestClient, actor_id: int, therapy_id: int) -> None:
    assert client.post(f"/api/therapies/{therapy_id}/disable", headers=headers(actor_id)).json() == {"ok": True}
    assert client.get("/api/therapies").json() == []
    assert len(client.get("/api/therapies", params={"all": True}).json()) == 1

    assert client.delete(f"/api/therapies/{therapy_id}", headers=headers(actor_id)).status_code == 200
    assert client.get(f"/api/therapies/{therapy_id}").status_code == 404


def test_action_log(client: TestClient, actor_id: int, tracer_id: int) -> None:
    entries = client.get("/api/action-log").json()

    assert [e["action-id"] for e in entries] == [1, 6]
    assert entries[-1]["associated-id"] == tracer_id
    assert entries[-1]["staff"] == "Administrator"


def test_correct_action_log_note(client: TestClient, actor_id: int, tracer_id: int) -> None:
    entry_id = client.get("/api/action-log").json()[-1]["id"]

    response = client.patch(f"/api/action-log/{entry_id}/note", json={"note": "ok"}, headers=headers(actor_id))

    assert response.status_code == 200
    entries = {e["id"]: e for e in client.get("/api/action-log").json()}
    assert entries[entry_id]["note"] == "ok"


def test_therapy_without_tracer_is_unprocessable(client: TestClient) -> None:
    with db_session() as s:
        therapy = Therapy(name="Broken")
        s.add(therapy)
        s.flush()
        therapy_id = therapy.id

    response = client.get(f"/api/therapies/{therapy_id}")

    assert response.status_code == 422
    assert "tracer" in response.json()["detail"]


def test_store_unavailable_is_service_unavailable(client: TestClient, monkeypatch) -> None:
    def locked(enabled_only: bool = True) -> list[dict]:
        raise StoreUnavailable("database is locked")

    monkeypatch.setattr(api_main, "therapies_flat", locked)

    response = client.get("/api/therapies")

    assert response.status_code == 503
    assert response.json() == {"detail": "database is locked"}
