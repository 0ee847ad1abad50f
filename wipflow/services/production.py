# wipflow/services/production.py
"""
Production reporting: the single entry point that records output.

One call appends an OUTPUT log, advances the task, and propagates good
output through the ledger. Defects are logged and counted on the task but
never propagated; they leave the system at the step where they failed.

Nothing here commits. The caller (ProductionEngine) owns the transaction,
so the whole report is applied or none of it is.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from ..models.master import Machine, ProjectItem, SubAssembly
from ..models.production import (
    LogType,
    MachineStatus,
    ProductionLog,
    Shift,
    Task,
    TaskStatus,
)
from ..utils.helpers import new_id, utcnow
from . import ledger
from .errors import InvalidInput, NotFound, SoftOvershoot
from .event_logger import log_event
from .readiness import sub_assembly_sequence
from .topology import DEFAULT_TOPOLOGY, ProcessStep, ProcessTopology

logger = logging.getLogger(__name__)


@dataclass
class ProductionReport:
    task: Task
    item: ProjectItem
    log: ProductionLog
    sub_assemblies: List[SubAssembly] = field(default_factory=list)
    item_ledger: Dict[str, Dict[str, int]] = field(default_factory=dict)
    sub_assembly_ledgers: Dict[str, Dict[str, Dict[str, int]]] = field(default_factory=dict)


def check_overshoot(ready: int, good_qty: int, defect_qty: int) -> None:
    """
    Confirmation gate for callers. The engine itself accepts overshoot;
    raise SoftOvershoot so the caller can ask the operator first.
    """
    requested = good_qty + defect_qty
    if requested > ready:
        logger.warning("Requested %d exceeds ready quantity %d", requested, ready)
        raise SoftOvershoot(requested, ready)


def validate_quantities(good_qty: int, defect_qty: int) -> None:
    if good_qty < 0 or defect_qty < 0:
        raise InvalidInput("good and defect quantities must be >= 0")
    if good_qty + defect_qty <= 0:
        raise InvalidInput("good + defect quantity must be greater than zero")


def _parse_shift(shift: str) -> str:
    try:
        return Shift(shift).value
    except ValueError:
        raise InvalidInput(f"unknown shift {shift!r}")


def resolve_task(session: Session, task_id: str):
    """Load (task, item, sub_assembly or None), raising NotFound on any gap."""
    task = session.get(Task, task_id)
    if task is None:
        raise NotFound("task", task_id)
    item = session.get(ProjectItem, task.item_id)
    if item is None:
        raise NotFound("item", task.item_id)
    sa = None
    if task.sub_assembly_id:
        sa = session.get(SubAssembly, task.sub_assembly_id)
        if sa is None or sa.item_id != item.id:
            raise NotFound("sub-assembly", task.sub_assembly_id)
    return task, item, sa


def _apply_to_task(session: Session, task: Task, good_qty: int, defect_qty: int) -> None:
    task.completed_qty += good_qty
    task.defect_qty += defect_qty
    # Completion is the only transition reporting can trigger.
    if task.completed_qty >= task.target_qty and task.status != TaskStatus.COMPLETED.value:
        task.status = TaskStatus.COMPLETED.value
        if task.machine_id:
            machine = session.get(Machine, task.machine_id)
            if machine is not None:
                machine.status = MachineStatus.IDLE.value
        log_event(session, "TASK_COMPLETED", f"Task {task.id} ({task.step}) reached {task.completed_qty}/{task.target_qty}")


def _propagate_sub_assembly(
    session: Session,
    item: ProjectItem,
    sa: SubAssembly,
    step: ProcessStep,
    good_qty: int,
    defect_qty: int,
    topology: ProcessTopology,
) -> None:
    sequence = sub_assembly_sequence(sa, topology)
    if step not in sequence:
        raise InvalidInput(f"step {step.value} is not a process of sub-assembly {sa.id}")

    ledger.record_output(ledger.stock_at(session, item.id, step, sa.id), good_qty, defect_qty)

    nxt = topology.following(sequence, step)
    if nxt is not None:
        ledger.add_available(ledger.stock_at(session, item.id, nxt, sa.id), good_qty)
    else:
        sa.total_produced += good_qty
        sa.completed_qty += good_qty

    edge = topology.convergence
    if step == edge.source:
        ledger.add_available(ledger.stock_at(session, item.id, edge.target), good_qty)
        logger.debug("Convergence %s -> %s on %s: +%d", edge.source.value, edge.target.value, item.id, good_qty)

    if not sa.is_locked:
        sa.is_locked = True
        log_event(session, "SUB_ASSEMBLY_LOCKED", f"Sub-assembly {sa.id} locked by first production report")


def _propagate_item(
    session: Session,
    item: ProjectItem,
    step: ProcessStep,
    good_qty: int,
    defect_qty: int,
    topology: ProcessTopology,
) -> List[SubAssembly]:
    if not topology.is_assembly_step(step):
        raise InvalidInput(f"step {step.value} is not an assembly step")

    ledger.record_output(ledger.stock_at(session, item.id, step), good_qty, defect_qty)

    # The next step comes from the global assembly sequence, not the item workflow.
    nxt = topology.following(topology.assembly_steps, step)
    if nxt is not None:
        ledger.add_available(ledger.stock_at(session, item.id, nxt), good_qty)

    consumed: List[SubAssembly] = []
    if step == topology.convergence_step:
        subs = session.exec(select(SubAssembly).where(SubAssembly.item_id == item.id)).all()
        for sa in subs:
            before = sa.completed_qty
            sa.completed_qty = max(0, before - good_qty * max(1, sa.qty_per_parent))
            sa.consumed_qty += before - sa.completed_qty
            consumed.append(sa)
        if consumed:
            logger.debug("Welding %d on %s consumed from %d sub-assemblies", good_qty, item.id, len(consumed))
    return consumed


def report_production(
    session: Session,
    task_id: str,
    good_qty: int,
    defect_qty: int,
    shift: str,
    operator: str,
    topology: ProcessTopology = DEFAULT_TOPOLOGY,
    now: Optional[datetime] = None,
) -> ProductionReport:
    validate_quantities(good_qty, defect_qty)
    shift = _parse_shift(shift)
    task, item, sa = resolve_task(session, task_id)

    step = topology.parse(task.step)
    if step is None:
        raise InvalidInput(f"task {task.id} has unknown step {task.step!r}")

    log = ProductionLog(
        id=new_id("LOG"),
        task_id=task.id,
        machine_id=task.machine_id,
        project_id=task.project_id,
        item_id=item.id,
        sub_assembly_id=task.sub_assembly_id,
        step=step.value,
        shift=shift,
        good_qty=good_qty,
        defect_qty=defect_qty,
        operator=operator,
        timestamp=now or utcnow(),
        log_type=LogType.OUTPUT.value,
    )

    touched: List[SubAssembly] = []
    if sa is not None:
        _propagate_sub_assembly(session, item, sa, step, good_qty, defect_qty, topology)
        touched.append(sa)
    else:
        touched.extend(_propagate_item(session, item, step, good_qty, defect_qty, topology))

    session.add(log)
    _apply_to_task(session, task, good_qty, defect_qty)
    session.flush()

    logger.info(
        "Reported %d good / %d defect on task %s (%s, item %s) by %s",
        good_qty, defect_qty, task.id, step.value, item.id, operator,
    )
    return ProductionReport(
        task=task,
        item=item,
        log=log,
        sub_assemblies=touched,
        item_ledger=ledger.snapshot(ledger.ledger_of(session, item.id), topology),
        sub_assembly_ledgers={
            s.id: ledger.snapshot(ledger.ledger_of(session, item.id, s.id), topology) for s in touched
        },
    )
