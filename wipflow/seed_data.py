# wipflow/seed_data.py

from datetime import date, timedelta

from sqlalchemy.engine import Engine
from sqlmodel import select

from .database import new_session
from .models.master import Project
from .services.projects import (
    WorkflowStepConfig,
    add_sub_assembly,
    configure_workflow,
    create_item,
    create_machine,
    create_project,
)
from .services.topology import ASSEMBLY_STEPS, COMPONENT_STEPS


def seed_demo_data(bind: Engine = None) -> None:
    """
    Seeds one demo project: machines for every step, one rack item built
    from two sub-assemblies, and a full assembly workflow.
    Skips seeding if the Project table is non-empty.
    """
    today = date.today()

    with new_session(bind) as session:
        # Skip if already seeded
        if session.exec(select(Project)).first():
            return

        # === Machines ===
        machines = {}
        for idx, step in enumerate(COMPONENT_STEPS + ASSEMBLY_STEPS, start=1):
            machines[step] = create_machine(
                session,
                code=f"M{idx:02d}",
                name=f"{step.value.title()} Station",
                step=step.value,
                capacity_per_hour=60,
                machine_id=f"MCH-{idx:02d}",
            )
        session.flush()

        # === Project & item ===
        create_project(
            session,
            code="PRJ-001",
            name="Warehouse Racking",
            customer="PT Demo Logistik",
            start_date=today,
            deadline=today + timedelta(days=20),
            project_id="PRJ-001",
        )
        session.flush()
        item = create_item(session, "PRJ-001", "Rack Frame 2m", quantity=200, item_id="ITM-001")

        # === Sub-assemblies ===
        add_sub_assembly(
            session, item.id, "Upright Post", qty_per_parent=2, total_needed=400,
            processes=["CUTTING", "PUNCHING", "PRESSING"], sa_id="SA-001",
        )
        add_sub_assembly(
            session, item.id, "Cross Beam", qty_per_parent=4, total_needed=800,
            processes=["CUTTING", "PRESSING"], sa_id="SA-002",
        )

        # === Workflow ===
        configure_workflow(
            session,
            item.id,
            [WorkflowStepConfig(step=s.value, machine_id=machines[s].id) for s in ASSEMBLY_STEPS],
        )

        session.commit()
