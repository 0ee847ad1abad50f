from enum import Enum
from typing import Optional
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from ..utils.helpers import utcnow


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    DOWNTIME = "DOWNTIME"
    COMPLETED = "COMPLETED"


class MachineStatus(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    MAINTENANCE = "MAINTENANCE"
    OFFLINE = "OFFLINE"
    DOWNTIME = "DOWNTIME"


class LogType(str, Enum):
    OUTPUT = "OUTPUT"
    WAREHOUSE_ENTRY = "WAREHOUSE_ENTRY"
    DOWNTIME_START = "DOWNTIME_START"
    DOWNTIME_END = "DOWNTIME_END"


class Shift(str, Enum):
    SHIFT_1 = "SHIFT_1"
    SHIFT_2 = "SHIFT_2"
    SHIFT_3 = "SHIFT_3"


class StepStock(SQLModel, table=True):
    """
    One ledger cell: the {produced, available} pair for one step of one entity.

    sub_assembly_id is NULL for the final item's own ledger.
    """
    __table_args__ = (
        UniqueConstraint("item_id", "sub_assembly_id", "step", name="uq_stepstock_cell"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: str = Field(foreign_key="projectitem.id", index=True)
    sub_assembly_id: Optional[str] = Field(default=None, foreign_key="subassembly.id", index=True)
    step: str
    produced: int = 0
    available: int = 0


class Task(SQLModel, table=True):
    id: str = Field(primary_key=True)
    project_id: str = Field(foreign_key="project.id", index=True)
    item_id: str = Field(foreign_key="projectitem.id", index=True)
    sub_assembly_id: Optional[str] = Field(default=None, foreign_key="subassembly.id")
    step: str
    machine_id: Optional[str] = Field(default=None, foreign_key="machine.id")

    target_qty: int
    completed_qty: int = 0
    defect_qty: int = 0

    status: str = TaskStatus.PENDING.value
    note: Optional[str] = None
    total_downtime_minutes: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class ProductionLog(SQLModel, table=True):
    """Append-only audit record. Rows are inserted and never updated."""
    id: str = Field(primary_key=True)
    task_id: Optional[str] = Field(default=None, index=True)
    machine_id: Optional[str] = None
    project_id: str
    item_id: str = Field(index=True)
    sub_assembly_id: Optional[str] = Field(default=None, index=True)
    step: str
    shift: str
    good_qty: int = 0
    defect_qty: int = 0
    operator: str
    timestamp: datetime = Field(default_factory=utcnow)
    log_type: str = LogType.OUTPUT.value
