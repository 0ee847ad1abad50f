"""
Shared fixtures: an in-memory database per test, a ProductionEngine bound
to it, and builders for items with sub-assemblies and workflows.
"""

from datetime import date, timedelta
from types import SimpleNamespace
from typing import Optional

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select

from wipflow.database import build_engine, create_db_and_tables, new_session
from wipflow.models.production import Task
from wipflow.services.engine import ProductionEngine
from wipflow.services.projects import (
    WorkflowStepConfig,
    add_sub_assembly,
    configure_workflow,
    create_item,
    create_machine,
    create_project,
)

FULL_WORKFLOW = ("WELDING", "PHOSPHATING", "PAINTING", "PACKING")


@pytest.fixture
def db_engine():
    eng = build_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(eng)
    yield eng
    SQLModel.metadata.drop_all(eng)


@pytest.fixture
def session(db_engine):
    with new_session(db_engine) as s:
        yield s


@pytest.fixture
def engine(db_engine):
    return ProductionEngine(session_factory=lambda: new_session(db_engine))


@pytest.fixture
def make_item(session):
    """
    Build a project + item, optional sub-assemblies and a workflow, commit,
    and return a namespace with the created rows.
    """
    counter = {"n": 0}

    def _make(
        quantity: int = 100,
        sub_assemblies=(),
        workflow=FULL_WORKFLOW,
        start: date = date(2026, 1, 1),
        deadline_days: int = 10,
    ):
        counter["n"] += 1
        n = counter["n"]
        project = create_project(
            session,
            code=f"P{n}",
            name=f"Project {n}",
            start_date=start,
            deadline=start + timedelta(days=deadline_days),
            project_id=f"PRJ-{n}",
        )
        session.flush()
        item = create_item(session, project.id, f"Frame {n}", quantity, item_id=f"ITM-{n}")
        subs = [
            add_sub_assembly(session, item.id, sa_id=f"SA-{n}-{i}", **spec)
            for i, spec in enumerate(sub_assemblies, start=1)
        ]
        item_tasks = []
        if workflow:
            item_tasks = configure_workflow(
                session, item.id, [WorkflowStepConfig(step=s) for s in workflow]
            )
        session.commit()
        return SimpleNamespace(
            project=project,
            item=item,
            subs=subs,
            item_tasks={t.step: t for t in item_tasks},
        )

    return _make


@pytest.fixture
def task_for(session):
    """Find the task of an item (or of one of its sub-assemblies) at a step."""

    def _find(item_id: str, step: str, sa_id: Optional[str] = None) -> Task:
        return session.exec(
            select(Task).where(
                Task.item_id == item_id,
                Task.sub_assembly_id == sa_id,
                Task.step == step,
            )
        ).one()

    return _find


@pytest.fixture
def machine(session):
    m = create_machine(session, code="W1", name="Welder", step="WELDING", machine_id="MCH-W1")
    session.commit()
    return m
