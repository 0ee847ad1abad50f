# wipflow/services/projects.py
"""
Project structure: projects, items, sub-assemblies, workflows, machines.

Sub-assemblies are locked by their first production report (or by hand);
a locked sub-assembly keeps its ledger moving but refuses structural edits.
A sub-assembly can only be deleted while no production log references it.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from ..models.master import Machine, Project, ProjectItem, SubAssembly
from ..models.production import ProductionLog, Task
from ..utils.helpers import new_id
from . import ledger
from .errors import InvalidInput, NotFound, StructureLocked
from .event_logger import log_event
from .topology import DEFAULT_TOPOLOGY, ProcessTopology
from .warehouse import pending_validation

logger = logging.getLogger(__name__)


@dataclass
class WorkflowStepConfig:
    step: str
    machine_id: Optional[str] = None
    target_qty: Optional[int] = None
    note: Optional[str] = None


def get_item(session: Session, item_id: str) -> ProjectItem:
    item = session.get(ProjectItem, item_id)
    if item is None:
        raise NotFound("item", item_id)
    return item


def get_sub_assembly(session: Session, item_id: str, sa_id: str) -> SubAssembly:
    sa = session.get(SubAssembly, sa_id)
    if sa is None or sa.item_id != item_id:
        raise NotFound("sub-assembly", sa_id)
    return sa


def _check_machine(session: Session, machine_id: Optional[str]) -> None:
    if machine_id and session.get(Machine, machine_id) is None:
        raise NotFound("machine", machine_id)


# ---------- projects, items, machines ----------

def create_project(
    session: Session,
    code: str,
    name: str,
    start_date: date,
    deadline: date,
    customer: str = "",
    project_id: Optional[str] = None,
) -> Project:
    if deadline < start_date:
        raise InvalidInput("deadline is before start date")
    project = Project(
        id=project_id or new_id("PRJ"),
        code=code,
        name=name,
        customer=customer,
        start_date=start_date,
        deadline=deadline,
    )
    session.add(project)
    log_event(session, "PROJECT_CREATED", f"Project {project.code} ({project.name})")
    return project


def create_item(
    session: Session,
    project_id: str,
    name: str,
    quantity: int,
    unit: str = "PCS",
    item_id: Optional[str] = None,
) -> ProjectItem:
    if session.get(Project, project_id) is None:
        raise NotFound("project", project_id)
    if quantity <= 0:
        raise InvalidInput("item quantity must be greater than zero")
    item = ProjectItem(
        id=item_id or new_id("ITM"),
        project_id=project_id,
        name=name,
        quantity=quantity,
        unit=unit,
    )
    session.add(item)
    session.flush()
    return item


def create_machine(
    session: Session,
    code: str,
    name: str,
    step: str,
    capacity_per_hour: int = 0,
    machine_id: Optional[str] = None,
    topology: ProcessTopology = DEFAULT_TOPOLOGY,
) -> Machine:
    parsed = topology.parse(step)
    if parsed is None:
        raise InvalidInput(f"unknown process step {step!r}")
    machine = Machine(
        id=machine_id or new_id("MCH"),
        code=code,
        name=name,
        step=parsed.value,
        capacity_per_hour=capacity_per_hour,
    )
    session.add(machine)
    return machine


# ---------- sub-assemblies ----------

def _component_steps(processes: Sequence[str], topology: ProcessTopology) -> List[str]:
    if not processes:
        raise InvalidInput("a sub-assembly needs at least one process step")
    for p in processes:
        if not topology.is_component_step(p):
            raise InvalidInput(f"{p!r} is not a component process step")
    return [s.value for s in topology.ordered(processes)]


def _create_sub_assembly_tasks(session: Session, item: ProjectItem, sa: SubAssembly) -> List[Task]:
    tasks = [
        Task(
            id=new_id("TSK"),
            project_id=item.project_id,
            item_id=item.id,
            sub_assembly_id=sa.id,
            step=step,
            target_qty=sa.total_needed,
        )
        for step in sa.processes
    ]
    session.add_all(tasks)
    return tasks


def _drop_sub_assembly_runtime(session: Session, sa: SubAssembly) -> None:
    for t in session.exec(select(Task).where(Task.sub_assembly_id == sa.id)).all():
        session.delete(t)
    ledger.delete_ledger(session, sa.item_id, sa.id)


def add_sub_assembly(
    session: Session,
    item_id: str,
    name: str,
    qty_per_parent: int,
    total_needed: int,
    processes: Sequence[str],
    sa_id: Optional[str] = None,
    topology: ProcessTopology = DEFAULT_TOPOLOGY,
) -> SubAssembly:
    item = get_item(session, item_id)
    if qty_per_parent < 1:
        raise InvalidInput("qty_per_parent must be at least 1")
    if total_needed < 0:
        raise InvalidInput("total_needed must be >= 0")

    sa = SubAssembly(
        id=sa_id or new_id("SA"),
        item_id=item.id,
        name=name,
        qty_per_parent=qty_per_parent,
        total_needed=total_needed,
        processes=_component_steps(processes, topology),
    )
    session.add(sa)
    session.flush()

    ledger.init_sub_assembly_ledger(session, sa)
    _create_sub_assembly_tasks(session, item, sa)
    log_event(
        session,
        "SUB_ASSEMBLY_ADDED",
        f"Sub-assembly {sa.name} ({sa.id}) on item {item.id}: {sa.total_needed} needed, {sa.qty_per_parent}/parent",
    )
    return sa


def update_sub_assembly(
    session: Session,
    item_id: str,
    sa_id: str,
    name: Optional[str] = None,
    qty_per_parent: Optional[int] = None,
    total_needed: Optional[int] = None,
    processes: Optional[Sequence[str]] = None,
    topology: ProcessTopology = DEFAULT_TOPOLOGY,
) -> SubAssembly:
    sa = get_sub_assembly(session, item_id, sa_id)
    if sa.is_locked:
        raise StructureLocked(f"sub-assembly {sa.id} is locked")

    if name is not None:
        sa.name = name
    if qty_per_parent is not None:
        if qty_per_parent < 1:
            raise InvalidInput("qty_per_parent must be at least 1")
        sa.qty_per_parent = qty_per_parent

    rebuild = False
    if total_needed is not None and total_needed != sa.total_needed:
        if total_needed < 0:
            raise InvalidInput("total_needed must be >= 0")
        sa.total_needed = total_needed
        rebuild = True
    if processes is not None:
        steps = _component_steps(processes, topology)
        if steps != list(sa.processes):
            sa.processes = steps
            rebuild = True

    if rebuild:
        # Unlocked sub-assemblies have no reported output yet.
        _drop_sub_assembly_runtime(session, sa)
        session.flush()
        ledger.init_sub_assembly_ledger(session, sa)
        _create_sub_assembly_tasks(session, get_item(session, item_id), sa)
    return sa


def lock_sub_assembly(session: Session, item_id: str, sa_id: str) -> SubAssembly:
    sa = get_sub_assembly(session, item_id, sa_id)
    if not sa.is_locked:
        sa.is_locked = True
        log_event(session, "SUB_ASSEMBLY_LOCKED", f"Sub-assembly {sa.id} locked")
    return sa


def delete_sub_assembly(session: Session, item_id: str, sa_id: str) -> None:
    sa = get_sub_assembly(session, item_id, sa_id)
    referenced = session.exec(
        select(ProductionLog).where(ProductionLog.sub_assembly_id == sa.id)
    ).first()
    if referenced is not None:
        raise StructureLocked(f"sub-assembly {sa.id} has production history")

    _drop_sub_assembly_runtime(session, sa)
    session.delete(sa)
    log_event(session, "SUB_ASSEMBLY_DELETED", f"Sub-assembly {sa.id} removed from item {item_id}")


# ---------- workflow ----------

def configure_workflow(
    session: Session,
    item_id: str,
    steps: Sequence[WorkflowStepConfig],
    topology: ProcessTopology = DEFAULT_TOPOLOGY,
) -> List[Task]:
    """
    Fix the item's assembly steps, initialise its ledger and create one
    task per step. The workflow is locked afterwards.
    """
    item = get_item(session, item_id)
    if item.is_workflow_locked:
        raise StructureLocked(f"workflow of item {item.id} is locked")
    if not steps:
        raise InvalidInput("a workflow needs at least one step")

    by_step: Dict[str, WorkflowStepConfig] = {}
    for cfg in steps:
        if not topology.is_assembly_step(cfg.step):
            raise InvalidInput(f"{cfg.step!r} is not an assembly step")
        name = topology.parse(cfg.step).value
        if name in by_step:
            raise InvalidInput(f"step {name} listed twice")
        if cfg.target_qty is not None and cfg.target_qty <= 0:
            raise InvalidInput("step target must be greater than zero")
        _check_machine(session, cfg.machine_id)
        by_step[name] = cfg

    ordered = [s.value for s in topology.ordered(by_step)]
    item.workflow = ordered
    item.is_workflow_locked = True
    ledger.init_item_ledger(session, item, ordered)

    tasks = []
    for name in ordered:
        cfg = by_step[name]
        tasks.append(
            Task(
                id=new_id("TSK"),
                project_id=item.project_id,
                item_id=item.id,
                step=name,
                machine_id=cfg.machine_id,
                target_qty=cfg.target_qty or item.quantity,
                note=cfg.note,
            )
        )
    session.add_all(tasks)
    log_event(session, "WORKFLOW_LOCKED", f"Item {item.id} workflow: {' > '.join(ordered)}")
    return tasks


def unlock_workflow(session: Session, item_id: str) -> ProjectItem:
    """Reopen the workflow and drop the item's assembly tasks, if none has output yet."""
    item = get_item(session, item_id)
    tasks = session.exec(
        select(Task).where(Task.item_id == item.id, Task.sub_assembly_id == None)  # noqa: E711
    ).all()
    task_ids = [t.id for t in tasks]
    if task_ids:
        used = session.exec(
            select(ProductionLog).where(ProductionLog.task_id.in_(task_ids))
        ).first()
        if used is not None:
            raise StructureLocked(f"item {item.id} already has assembly output")

    for t in tasks:
        session.delete(t)
    # Rows still holding stock (e.g. welding input fed by sub-assemblies) stay.
    for row in ledger.ledger_of(session, item.id).values():
        if row.produced == 0 and row.available == 0:
            session.delete(row)
    item.is_workflow_locked = False
    log_event(session, "WORKFLOW_UNLOCKED", f"Item {item.id} workflow reopened, {len(tasks)} tasks removed")
    return item


# ---------- views ----------

def item_detail(session: Session, item_id: str, topology: ProcessTopology = DEFAULT_TOPOLOGY) -> Dict:
    item = get_item(session, item_id)
    subs = session.exec(select(SubAssembly).where(SubAssembly.item_id == item.id)).all()
    return {
        "item": item,
        "ledger": ledger.snapshot(ledger.ledger_of(session, item.id), topology),
        "pending_validation": pending_validation(session, item, topology),
        "sub_assemblies": [
            {
                "sub_assembly": sa,
                "ledger": ledger.snapshot(ledger.ledger_of(session, item.id, sa.id), topology),
            }
            for sa in subs
        ],
    }
