from .master import Project, ProjectItem, SubAssembly, Machine
from .production import (
    StepStock,
    Task,
    ProductionLog,
    TaskStatus,
    MachineStatus,
    LogType,
    Shift,
)
from .events import Event

__all__ = [
    "Project",
    "ProjectItem",
    "SubAssembly",
    "Machine",
    "StepStock",
    "Task",
    "ProductionLog",
    "TaskStatus",
    "MachineStatus",
    "LogType",
    "Shift",
    "Event",
]
