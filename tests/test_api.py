"""
HTTP surface: status-code mapping, the overshoot confirmation round-trip
and the authorization seam.
"""

import pytest
from fastapi.testclient import TestClient

from wipflow.database import get_session, new_session
from wipflow.main import app
from wipflow.services import ledger
from wipflow.services.authorization import AllowAll, StaticPermissions, set_authorizer
from wipflow.services.engine import get_production_engine

POST = dict(name="Post", qty_per_parent=2, total_needed=100, processes=["CUTTING", "PUNCHING", "PRESSING"])


@pytest.fixture
def client(db_engine, engine):
    def _session():
        with new_session(db_engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_production_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()
    set_authorizer(AllowAll())


@pytest.fixture
def plant(make_item):
    return make_item(sub_assemblies=[POST])


def test_root(client):
    assert client.get("/").json()["service"] == "wipflow"


class TestReport:

    def test_report_within_ready(self, client, plant, task_for):
        task = task_for(plant.item.id, "CUTTING", plant.subs[0].id)

        r = client.post(
            "/api/production/report",
            json={"task_id": task.id, "good_qty": 40, "defect_qty": 5, "shift": "SHIFT_1", "operator": "Budi"},
        )

        assert r.status_code == 200
        body = r.json()
        assert body["task"]["completed_qty"] == 40
        assert body["log"]["operator"] == "Budi"
        assert body["sub_assembly_ledgers"][plant.subs[0].id]["PUNCHING"]["available"] == 40

    def test_overshoot_needs_confirmation(self, client, plant):
        task_id = plant.item_tasks["WELDING"].id
        payload = {"task_id": task_id, "good_qty": 5, "shift": "SHIFT_1"}

        r = client.post("/api/production/report", json=payload)
        assert r.status_code == 409
        assert r.json()["ready"] == 0
        assert r.json()["requested"] == 5

        r = client.post("/api/production/report", json={**payload, "confirm_overshoot": True})
        assert r.status_code == 200
        assert r.json()["task"]["completed_qty"] == 5

    @pytest.mark.parametrize("good,defect", [(0, 0), (-1, 5), (5, -1)])
    def test_invalid_quantities_are_400_before_the_overshoot_gate(self, client, plant, good, defect):
        task_id = plant.item_tasks["WELDING"].id
        r = client.post(
            "/api/production/report",
            json={"task_id": task_id, "good_qty": good, "defect_qty": defect, "shift": "SHIFT_1"},
        )
        assert r.status_code == 400

    def test_unknown_task_is_404_before_the_overshoot_gate(self, client):
        r = client.post("/api/production/report", json={"task_id": "TSK-nope", "good_qty": 1, "shift": "SHIFT_1"})
        assert r.status_code == 404
        assert r.json()["kind"] == "task"

    def test_unknown_task_with_confirmation(self, client):
        r = client.post(
            "/api/production/report",
            json={"task_id": "TSK-nope", "good_qty": 1, "confirm_overshoot": True},
        )
        assert r.status_code == 404

    def test_ready_and_daily_target(self, client, plant, task_for):
        task = task_for(plant.item.id, "CUTTING", plant.subs[0].id)
        assert client.get(f"/api/production/tasks/{task.id}/ready").json()["ready_qty"] == 100
        assert client.get(f"/api/production/tasks/{task.id}/daily-target").status_code == 200
        assert client.get("/api/production/tasks/TSK-nope/ready").status_code == 404

    def test_logs_listing(self, client, plant):
        client.post(
            "/api/production/report",
            json={"task_id": plant.item_tasks["PACKING"].id, "good_qty": 2, "shift": "SHIFT_1", "confirm_overshoot": True},
        )
        logs = client.get("/api/production/logs", params={"item_id": plant.item.id}).json()
        assert [log["good_qty"] for log in logs] == [2]


class TestTasksAndWarehouse:

    def test_transitions(self, client, plant):
        task_id = plant.item_tasks["PAINTING"].id
        assert client.post(f"/api/tasks/{task_id}/start").json()["status"] == "IN_PROGRESS"
        assert client.post(f"/api/tasks/{task_id}/downtime/begin").json()["status"] == "DOWNTIME"
        body = client.post(f"/api/tasks/{task_id}/downtime/end").json()
        assert body["status"] == "IN_PROGRESS"
        assert body["total_downtime_minutes"] == 10
        assert client.post("/api/tasks/TSK-nope/pause").status_code == 404

    def test_machine_board(self, client, plant, machine):
        task_id = plant.item_tasks["WELDING"].id
        client.post(f"/api/tasks/{task_id}/machine", json={"machine_id": machine.id})
        client.post(f"/api/tasks/{task_id}/start")

        board = client.get(f"/api/tasks/board/{machine.id}").json()
        assert board["active"]["task"]["id"] == task_id
        assert board["machine"]["status"] == "RUNNING"

    def test_validate_to_warehouse(self, client, session, plant):
        ledger.stock_at(session, plant.item.id, "PACKING").produced = 50
        session.commit()

        r = client.post("/api/warehouse/validate", json={"item_id": plant.item.id, "qty": 20})
        assert r.status_code == 200
        assert r.json()["packing"]["produced"] == 30

        (row,) = client.get("/api/warehouse").json()
        assert (row["pending_validation"], row["warehouse_qty"], row["on_hand"]) == (30, 20, 20)
        assert len(client.get(f"/api/warehouse/{plant.item.id}/history").json()) == 1

    def test_validate_rejects_zero(self, client, plant):
        r = client.post("/api/warehouse/validate", json={"item_id": plant.item.id, "qty": 0})
        assert r.status_code == 400


class TestStructure:

    def test_build_item_over_http(self, client, machine):
        project = client.post(
            "/api/projects",
            json={"code": "P9", "name": "Rack", "start_date": "2026-01-01", "deadline": "2026-01-31"},
        ).json()
        item = client.post(f"/api/projects/{project['id']}/items", json={"name": "Rack", "quantity": 10}).json()

        sa = client.post(
            f"/api/items/{item['id']}/sub-assemblies",
            json={"name": "Leg", "qty_per_parent": 4, "total_needed": 40, "processes": ["CUTTING"]},
        )
        assert sa.status_code == 200
        wf = client.post(
            f"/api/items/{item['id']}/workflow",
            json={"steps": [{"step": "WELDING", "machine_id": machine.id}, {"step": "PACKING"}]},
        )
        assert [t["step"] for t in wf.json()] == ["WELDING", "PACKING"]

        detail = client.get(f"/api/data/items/{item['id']}").json()
        assert list(detail["ledger"]) == ["WELDING", "PACKING"]
        assert detail["sub_assemblies"][0]["ledger"]["CUTTING"]["available"] == 40

    def test_locked_structure_is_409(self, client, plant):
        r = client.post(f"/api/items/{plant.item.id}/workflow", json={"steps": [{"step": "PACKING"}]})
        assert r.status_code == 409
        r = client.post(f"/api/items/{plant.item.id}/sub-assemblies/{plant.subs[0].id}/lock")
        assert r.json()["is_locked"] is True
        r = client.put(f"/api/items/{plant.item.id}/sub-assemblies/{plant.subs[0].id}", json={"name": "x"})
        assert r.status_code == 409

    def test_events_are_listed(self, client, plant):
        types = {e["event_type"] for e in client.get("/api/data/events").json()}
        assert "SUB_ASSEMBLY_ADDED" in types


class TestAuthorization:

    def test_denied_operator_gets_403(self, client, plant):
        set_authorizer(StaticPermissions({"Budi": {("PRODUCTION", "create")}}))
        task_id = plant.item_tasks["WELDING"].id
        payload = {"task_id": task_id, "good_qty": 1, "shift": "SHIFT_1", "confirm_overshoot": True}

        r = client.post("/api/production/report", json=payload, headers={"X-Operator": "Sari"})
        assert r.status_code == 403

        r = client.post("/api/production/report", json=payload, headers={"X-Operator": "Budi"})
        assert r.status_code == 200
        assert r.json()["log"]["operator"] == "Budi"
