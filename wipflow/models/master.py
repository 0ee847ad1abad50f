from typing import List, Optional
from datetime import date

from sqlalchemy import JSON
from sqlmodel import SQLModel, Field, Column


class Project(SQLModel, table=True):
    id: str = Field(primary_key=True)
    code: str
    name: str
    customer: str = ""
    start_date: date
    deadline: date
    status: str = "PLANNED"  # PLANNED, IN_PROGRESS, COMPLETED, ON_HOLD


class ProjectItem(SQLModel, table=True):
    """Final-assembly item: the parent unit that sub-assemblies are welded into."""
    id: str = Field(primary_key=True)
    project_id: str = Field(foreign_key="project.id", index=True)
    name: str
    quantity: int  # target quantity
    unit: str = "PCS"

    # Assembly steps this item runs, stored in catalog order.
    workflow: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_workflow_locked: bool = False

    warehouse_qty: int = 0  # finished stock validated into the warehouse
    shipped_qty: int = 0


class SubAssembly(SQLModel, table=True):
    id: str = Field(primary_key=True)
    item_id: str = Field(foreign_key="projectitem.id", index=True)
    name: str
    qty_per_parent: int = 1
    total_needed: int = 0

    completed_qty: int = 0   # finished component stock, drained by welding
    total_produced: int = 0  # lifetime output at the last step, never drained
    consumed_qty: int = 0    # lifetime quantity drained by welding

    # Component steps in order.
    processes: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_locked: bool = False


class Machine(SQLModel, table=True):
    id: str = Field(primary_key=True)
    code: str
    name: str
    step: str  # the process step this machine runs
    capacity_per_hour: int = 0
    status: str = "IDLE"  # IDLE, RUNNING, MAINTENANCE, OFFLINE, DOWNTIME
