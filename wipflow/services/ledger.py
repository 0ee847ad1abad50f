# wipflow/services/ledger.py
"""
Stock ledger: per entity, per step, two non-negative counters.

  produced  : cumulative good output recorded at the step
  available : the step's input buffer, i.e. what it may still consume

Every decrement floors at zero. Nothing here rejects an operation because a
subtraction would go negative.
"""

import logging
from typing import Dict, Iterable, Optional

from sqlmodel import Session, select

from ..models.master import ProjectItem, SubAssembly
from ..models.production import StepStock
from .topology import DEFAULT_TOPOLOGY, ProcessStep, ProcessTopology

logger = logging.getLogger(__name__)


def _step_name(step) -> str:
    return step.value if isinstance(step, ProcessStep) else str(step)


def ledger_of(
    session: Session, item_id: str, sub_assembly_id: Optional[str] = None
) -> Dict[str, StepStock]:
    """All ledger rows of one entity, keyed by step name."""
    rows = session.exec(
        select(StepStock).where(
            StepStock.item_id == item_id,
            StepStock.sub_assembly_id == sub_assembly_id,
        )
    ).all()
    return {r.step: r for r in rows}


def stock_at(
    session: Session, item_id: str, step, sub_assembly_id: Optional[str] = None
) -> StepStock:
    """Get the ledger row for a step, creating an empty one if missing."""
    name = _step_name(step)
    row = session.exec(
        select(StepStock).where(
            StepStock.item_id == item_id,
            StepStock.sub_assembly_id == sub_assembly_id,
            StepStock.step == name,
        )
    ).first()
    if row is None:
        row = StepStock(item_id=item_id, sub_assembly_id=sub_assembly_id, step=name)
        session.add(row)
    return row


def init_item_ledger(session: Session, item: ProjectItem, steps: Iterable) -> Dict[str, StepStock]:
    for step in steps:
        stock_at(session, item.id, step)
    session.flush()
    return ledger_of(session, item.id)


def init_sub_assembly_ledger(session: Session, sa: SubAssembly) -> Dict[str, StepStock]:
    """
    Create a row for every process step of the sub-assembly.

    The first step's buffer starts full (total_needed); the rest start empty.
    """
    for idx, step in enumerate(sa.processes):
        row = stock_at(session, sa.item_id, step, sa.id)
        if idx == 0 and row.produced == 0 and row.available == 0:
            row.available = sa.total_needed
    session.flush()
    return ledger_of(session, sa.item_id, sa.id)


def record_output(row: StepStock, good_qty: int, defect_qty: int) -> StepStock:
    row.produced += good_qty
    row.available = max(0, row.available - (good_qty + defect_qty))
    return row


def add_available(row: StepStock, qty: int) -> StepStock:
    row.available += qty
    return row


def reduce_produced(row: StepStock, qty: int) -> StepStock:
    row.produced = max(0, row.produced - qty)
    return row


def snapshot(rows: Dict[str, StepStock], topology: ProcessTopology = DEFAULT_TOPOLOGY) -> Dict[str, Dict[str, int]]:
    """Plain {step: {"produced", "available"}} view in catalog order."""
    ordered = sorted(rows.values(), key=lambda r: topology.position(r.step))
    return {r.step: {"produced": r.produced, "available": r.available} for r in ordered}


def delete_ledger(session: Session, item_id: str, sub_assembly_id: Optional[str] = None) -> int:
    rows = ledger_of(session, item_id, sub_assembly_id)
    for row in rows.values():
        session.delete(row)
    logger.debug("Removed %d ledger rows for %s/%s", len(rows), item_id, sub_assembly_id)
    return len(rows)
