"""
Unit tests for project structure: sub-assemblies, workflows and locking.
"""

from datetime import date

import pytest
from sqlmodel import select

from wipflow.models.events import Event
from wipflow.models.master import SubAssembly
from wipflow.models.production import StepStock, Task
from wipflow.services import ledger, projects
from wipflow.services.errors import InvalidInput, NotFound, StructureLocked
from wipflow.services.production import report_production
from wipflow.services.projects import WorkflowStepConfig

POST = dict(name="Post", qty_per_parent=2, total_needed=100, processes=["PRESSING", "cutting"])


def _sub_tasks(session, sa_id):
    return session.exec(select(Task).where(Task.sub_assembly_id == sa_id)).all()


class TestProjectsAndItems:

    def test_deadline_before_start(self, session):
        with pytest.raises(InvalidInput):
            projects.create_project(session, "P", "P", start_date=date(2026, 2, 1), deadline=date(2026, 1, 1))

    def test_item_needs_project(self, session):
        with pytest.raises(NotFound):
            projects.create_item(session, "PRJ-nope", "Frame", 10)

    def test_item_needs_positive_quantity(self, session, make_item):
        plant = make_item()
        with pytest.raises(InvalidInput):
            projects.create_item(session, plant.project.id, "Frame", 0)

    def test_machine_step_must_exist(self, session):
        with pytest.raises(InvalidInput):
            projects.create_machine(session, "X", "Grinder", "GRINDING")

    def test_project_creation_is_logged(self, session, make_item):
        make_item()
        types = [e.event_type for e in session.exec(select(Event)).all()]
        assert "PROJECT_CREATED" in types
        assert "WORKFLOW_LOCKED" in types


class TestSubAssemblies:

    def test_add_orders_processes_and_creates_tasks(self, session, make_item):
        plant = make_item(sub_assemblies=[POST])
        sa = plant.subs[0]
        assert sa.processes == ["CUTTING", "PRESSING"]
        tasks = _sub_tasks(session, sa.id)
        assert sorted(t.step for t in tasks) == ["CUTTING", "PRESSING"]
        assert all(t.target_qty == 100 for t in tasks)

    @pytest.mark.parametrize(
        "changes",
        [
            dict(qty_per_parent=0),
            dict(total_needed=-1),
            dict(processes=[]),
            dict(processes=["WELDING"]),
        ],
    )
    def test_add_rejects_bad_definitions(self, session, make_item, changes):
        plant = make_item()
        with pytest.raises(InvalidInput):
            projects.add_sub_assembly(session, plant.item.id, **{**POST, **changes})

    def test_add_to_unknown_item(self, session):
        with pytest.raises(NotFound):
            projects.add_sub_assembly(session, "ITM-nope", **POST)

    def test_update_rebuilds_unlocked_sub_assembly(self, session, make_item):
        plant = make_item(sub_assemblies=[POST])
        sa = plant.subs[0]

        projects.update_sub_assembly(session, plant.item.id, sa.id, total_needed=40, processes=["CUTTING", "PUNCHING"])
        session.flush()

        cells = ledger.snapshot(ledger.ledger_of(session, plant.item.id, sa.id))
        assert cells == {
            "CUTTING": {"produced": 0, "available": 40},
            "PUNCHING": {"produced": 0, "available": 0},
        }
        assert sorted(t.step for t in _sub_tasks(session, sa.id)) == ["CUTTING", "PUNCHING"]

    def test_update_name_only_keeps_tasks(self, session, make_item):
        plant = make_item(sub_assemblies=[POST])
        sa = plant.subs[0]
        before = {t.id for t in _sub_tasks(session, sa.id)}
        projects.update_sub_assembly(session, plant.item.id, sa.id, name="Long Post")
        assert sa.name == "Long Post"
        assert {t.id for t in _sub_tasks(session, sa.id)} == before

    def test_reported_sub_assembly_is_structurally_locked(self, session, make_item, task_for):
        plant = make_item(sub_assemblies=[POST])
        sa = plant.subs[0]
        report_production(session, task_for(plant.item.id, "CUTTING", sa.id).id, 5, 0, "SHIFT_1", "Budi")

        with pytest.raises(StructureLocked):
            projects.update_sub_assembly(session, plant.item.id, sa.id, total_needed=10)
        with pytest.raises(StructureLocked):
            projects.delete_sub_assembly(session, plant.item.id, sa.id)

    def test_manual_lock(self, session, make_item):
        plant = make_item(sub_assemblies=[POST])
        sa = projects.lock_sub_assembly(session, plant.item.id, plant.subs[0].id)
        assert sa.is_locked
        with pytest.raises(StructureLocked):
            projects.update_sub_assembly(session, plant.item.id, sa.id, name="x")

    def test_delete_removes_tasks_and_ledger(self, session, make_item):
        plant = make_item(sub_assemblies=[POST])
        sa_id = plant.subs[0].id

        projects.delete_sub_assembly(session, plant.item.id, sa_id)
        session.flush()

        assert session.get(SubAssembly, sa_id) is None
        assert _sub_tasks(session, sa_id) == []
        assert session.exec(select(StepStock).where(StepStock.sub_assembly_id == sa_id)).all() == []

    def test_sub_assembly_of_other_item(self, session, make_item):
        first = make_item(sub_assemblies=[POST])
        second = make_item()
        with pytest.raises(NotFound):
            projects.lock_sub_assembly(session, second.item.id, first.subs[0].id)


class TestWorkflow:

    def test_configure_orders_steps_and_sets_targets(self, session, make_item, machine):
        plant = make_item(quantity=70, workflow=())
        tasks = projects.configure_workflow(
            session,
            plant.item.id,
            [
                WorkflowStepConfig(step="PACKING"),
                WorkflowStepConfig(step="welding", machine_id=machine.id, target_qty=75),
            ],
        )
        assert plant.item.workflow == ["WELDING", "PACKING"]
        assert plant.item.is_workflow_locked
        assert [(t.step, t.target_qty, t.machine_id) for t in tasks] == [
            ("WELDING", 75, machine.id),
            ("PACKING", 70, None),
        ]
        assert set(ledger.ledger_of(session, plant.item.id)) == {"WELDING", "PACKING"}

    @pytest.mark.parametrize(
        "steps",
        [
            [],
            [WorkflowStepConfig(step="CUTTING")],
            [WorkflowStepConfig(step="WELDING"), WorkflowStepConfig(step="welding")],
            [WorkflowStepConfig(step="WELDING", target_qty=0)],
        ],
    )
    def test_configure_rejects_bad_steps(self, session, make_item, steps):
        plant = make_item(workflow=())
        with pytest.raises(InvalidInput):
            projects.configure_workflow(session, plant.item.id, steps)

    def test_configure_checks_machines(self, session, make_item):
        plant = make_item(workflow=())
        with pytest.raises(NotFound):
            projects.configure_workflow(session, plant.item.id, [WorkflowStepConfig(step="WELDING", machine_id="MCH-x")])

    def test_locked_workflow_refuses_reconfiguration(self, session, make_item):
        plant = make_item()
        with pytest.raises(StructureLocked):
            projects.configure_workflow(session, plant.item.id, [WorkflowStepConfig(step="PACKING")])

    def test_unlock_before_output(self, session, make_item):
        plant = make_item()
        item = projects.unlock_workflow(session, plant.item.id)
        session.flush()
        assert not item.is_workflow_locked
        assert session.exec(select(Task).where(Task.item_id == item.id)).all() == []

    def test_reconfigured_workflow_drops_empty_ledger_rows(self, session, make_item):
        plant = make_item(sub_assemblies=[POST])
        ledger.stock_at(session, plant.item.id, "WELDING").available = 6
        projects.unlock_workflow(session, plant.item.id)
        session.flush()

        projects.configure_workflow(
            session, plant.item.id, [WorkflowStepConfig(step="WELDING"), WorkflowStepConfig(step="PACKING")]
        )
        session.flush()

        cells = projects.item_detail(session, plant.item.id)["ledger"]
        assert list(cells) == ["WELDING", "PACKING"]
        assert cells["WELDING"]["available"] == 6

    def test_unlock_after_output_is_refused(self, session, make_item):
        plant = make_item()
        report_production(session, plant.item_tasks["WELDING"].id, 1, 0, "SHIFT_1", "Budi")
        with pytest.raises(StructureLocked):
            projects.unlock_workflow(session, plant.item.id)


def test_item_detail(session, make_item):
    plant = make_item(sub_assemblies=[POST])
    ledger.stock_at(session, plant.item.id, "PACKING").produced = 7

    detail = projects.item_detail(session, plant.item.id)

    assert detail["item"].id == plant.item.id
    assert detail["pending_validation"] == 7
    assert list(detail["ledger"]) == ["WELDING", "PHOSPHATING", "PAINTING", "PACKING"]
    (sub,) = detail["sub_assemblies"]
    assert list(sub["ledger"]) == ["CUTTING", "PRESSING"]
