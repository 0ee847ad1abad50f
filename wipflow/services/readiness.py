# wipflow/services/readiness.py
"""
Readiness: how many units a task may process right now.

Read-only; derived from the ledger and the topology alone.

  sub-assembly task, first step   -> total_needed - produced at that step
  sub-assembly task, later step   -> available at the previous step
  item task, convergence step     -> scarcest owned component, in parent units
                                     (or target - completed with no components)
  item task, later step           -> available at the previous assembly step
  item task, first step otherwise -> target - completed

Item tasks step through the global assembly sequence, whatever subset of
it the item's workflow lists.
"""

from typing import List, Optional, Sequence

from sqlmodel import Session, select

from ..models.master import ProjectItem, SubAssembly
from ..models.production import Task
from . import ledger
from .topology import DEFAULT_TOPOLOGY, ProcessStep, ProcessTopology


def sub_assembly_sequence(sa: SubAssembly, topology: ProcessTopology = DEFAULT_TOPOLOGY) -> List[ProcessStep]:
    steps = [topology.parse(s) for s in (sa.processes or [])]
    return [s for s in steps if s is not None and topology.is_component_step(s)]


def parent_units_available(subs: Sequence[SubAssembly]) -> int:
    """How many parent units the finished component stock can feed."""
    return min(sa.completed_qty // max(1, sa.qty_per_parent) for sa in subs)


def _remaining(task: Task) -> int:
    return max(0, task.target_qty - task.completed_qty)


def ready_for_sub_assembly(
    session: Session, task: Task, sa: SubAssembly, topology: ProcessTopology = DEFAULT_TOPOLOGY
) -> int:
    sequence = sub_assembly_sequence(sa, topology)
    step = topology.parse(task.step)
    if not sequence or step not in sequence:
        return 0

    cells = ledger.ledger_of(session, sa.item_id, sa.id)
    prev = topology.previous(sequence, step)
    if prev is None:
        produced = cells[step.value].produced if step.value in cells else 0
        return max(0, sa.total_needed - produced)
    return cells[prev.value].available if prev.value in cells else 0


def ready_for_item(
    session: Session, task: Task, item: ProjectItem, topology: ProcessTopology = DEFAULT_TOPOLOGY
) -> int:
    step = topology.parse(task.step)
    if step is None or not topology.is_assembly_step(step):
        return 0

    if step == topology.convergence_step:
        subs = session.exec(select(SubAssembly).where(SubAssembly.item_id == item.id)).all()
        if subs:
            return parent_units_available(subs)
        return _remaining(task)

    prev = topology.previous(topology.assembly_steps, step)
    if prev is None:
        return _remaining(task)
    cells = ledger.ledger_of(session, item.id)
    return cells[prev.value].available if prev.value in cells else 0


def compute_ready_quantity(
    session: Session, task: Optional[Task], topology: ProcessTopology = DEFAULT_TOPOLOGY
) -> int:
    """Never raises for a task; unresolvable references give 0."""
    if task is None:
        return 0
    item = session.get(ProjectItem, task.item_id)
    if item is None:
        return 0

    if task.sub_assembly_id:
        sa = session.get(SubAssembly, task.sub_assembly_id)
        if sa is None or sa.item_id != item.id:
            return 0
        return ready_for_sub_assembly(session, task, sa, topology)
    return ready_for_item(session, task, item, topology)
