# wipflow/services/warehouse.py
"""
Warehouse validation: packed output leaves the process ledger and becomes
finished-goods stock on the item.

One-way movement between two independent ledgers. Shipping reads
warehouse_qty - shipped_qty directly; there is no readiness rule here.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from ..models.master import Project, ProjectItem
from ..models.production import LogType, ProductionLog
from ..utils.helpers import get_current_shift, new_id, utcnow
from . import ledger
from .errors import InvalidInput, NotFound
from .topology import DEFAULT_TOPOLOGY, ProcessTopology

logger = logging.getLogger(__name__)


@dataclass
class WarehouseEntry:
    item: ProjectItem
    log: ProductionLog
    packing: Dict[str, int]


def pending_validation(session: Session, item: ProjectItem, topology: ProcessTopology = DEFAULT_TOPOLOGY) -> int:
    """Packed but not yet validated: the packing step's produced counter."""
    cells = ledger.ledger_of(session, item.id)
    row = cells.get(topology.packing_step.value)
    return row.produced if row is not None else 0


def validate_to_warehouse(
    session: Session,
    item_id: str,
    qty: int,
    operator: str,
    topology: ProcessTopology = DEFAULT_TOPOLOGY,
    now: Optional[datetime] = None,
) -> WarehouseEntry:
    """
    Move `qty` from packing into warehouse stock.

    qty defaults (in the UI) to the pending amount but is not bounded by it;
    the packing counter floors at zero.
    """
    item = session.get(ProjectItem, item_id)
    if item is None:
        raise NotFound("item", item_id)
    if qty <= 0:
        raise InvalidInput("warehouse quantity must be greater than zero")

    now = now or utcnow()
    packing = topology.packing_step

    log = ProductionLog(
        id=new_id("LOG-WH"),
        task_id=None,
        machine_id=None,
        project_id=item.project_id,
        item_id=item.id,
        step=packing.value,
        shift=get_current_shift(now),
        good_qty=qty,
        defect_qty=0,
        operator=operator,
        timestamp=now,
        log_type=LogType.WAREHOUSE_ENTRY.value,
    )
    session.add(log)

    row = ledger.stock_at(session, item.id, packing)
    pending = row.produced
    ledger.reduce_produced(row, qty)
    item.warehouse_qty += qty
    session.flush()

    if qty > pending:
        logger.warning("Validated %d on %s with only %d pending at packing", qty, item.id, pending)
    logger.info("Validated %d of %s into warehouse (stock now %d)", qty, item.id, item.warehouse_qty)
    return WarehouseEntry(
        item=item,
        log=log,
        packing={"produced": row.produced, "available": row.available},
    )


def warehouse_view(session: Session, topology: ProcessTopology = DEFAULT_TOPOLOGY) -> List[Dict]:
    """
    One row per item:
      - pending_validation : packed, waiting for validation
      - warehouse_qty / shipped_qty
      - on_hand            : warehouse_qty - shipped_qty
    """
    items = session.exec(select(ProjectItem)).all()
    projects = {p.id: p for p in session.exec(select(Project)).all()}

    out = []
    for it in items:
        project = projects.get(it.project_id)
        out.append(
            {
                "item_id": it.id,
                "name": it.name,
                "project_id": it.project_id,
                "project_name": project.name if project else None,
                "unit": it.unit,
                "pending_validation": pending_validation(session, it, topology),
                "warehouse_qty": it.warehouse_qty,
                "shipped_qty": it.shipped_qty,
                "on_hand": it.warehouse_qty - it.shipped_qty,
            }
        )
    out.sort(key=lambda r: r["item_id"])
    return out


def warehouse_history(session: Session, item_id: str, topology: ProcessTopology = DEFAULT_TOPOLOGY) -> List[ProductionLog]:
    """Packing output and warehouse entries for one item, newest first."""
    if session.get(ProjectItem, item_id) is None:
        raise NotFound("item", item_id)
    return session.exec(
        select(ProductionLog)
        .where(
            ProductionLog.item_id == item_id,
            ProductionLog.step == topology.packing_step.value,
            ProductionLog.log_type.in_([LogType.OUTPUT.value, LogType.WAREHOUSE_ENTRY.value]),
        )
        .order_by(ProductionLog.timestamp.desc())
    ).all()
