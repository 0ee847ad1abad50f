# wipflow/services/tasks.py
"""
Task lifecycle.

    PENDING --start--> IN_PROGRESS --begin_downtime--> DOWNTIME
                          ^   |                           |
                          |   +--pause--> PAUSED          |
                          +------------end_downtime-------+

COMPLETED is only reached through a production report. Transitions are
operator-initiated and total: apart from NotFound nothing is rejected.
The bound machine's status mirrors the task.

Like the reporter, nothing here commits.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from ..models.master import Machine
from ..models.production import (
    LogType,
    MachineStatus,
    ProductionLog,
    Task,
    TaskStatus,
)
from ..utils.helpers import get_current_shift, new_id, utcnow
from .daily_target import daily_target_for_task
from .errors import NotFound
from .event_logger import log_event
from .readiness import compute_ready_quantity
from .topology import DEFAULT_TOPOLOGY, ProcessTopology

logger = logging.getLogger(__name__)

# Task status -> machine status echoed onto the bound machine.
MACHINE_ECHO = {
    TaskStatus.IN_PROGRESS.value: MachineStatus.RUNNING.value,
    TaskStatus.PAUSED.value: MachineStatus.IDLE.value,
    TaskStatus.PENDING.value: MachineStatus.IDLE.value,
    TaskStatus.DOWNTIME.value: MachineStatus.DOWNTIME.value,
    TaskStatus.COMPLETED.value: MachineStatus.IDLE.value,
}

ACTIVE_STATUSES = (TaskStatus.IN_PROGRESS.value, TaskStatus.DOWNTIME.value)
QUEUED_STATUSES = (TaskStatus.PENDING.value, TaskStatus.PAUSED.value)


def get_task(session: Session, task_id: str) -> Task:
    task = session.get(Task, task_id)
    if task is None:
        raise NotFound("task", task_id)
    return task


def _transition(session: Session, task: Task, status: TaskStatus) -> Task:
    previous = task.status
    if previous == TaskStatus.COMPLETED.value and status != TaskStatus.COMPLETED:
        logger.warning("Task %s is COMPLETED; moving it to %s on operator request", task.id, status.value)
    task.status = status.value

    if task.machine_id:
        machine = session.get(Machine, task.machine_id)
        if machine is not None:
            machine.status = MACHINE_ECHO[status.value]

    logger.info("Task %s: %s -> %s", task.id, previous, status.value)
    return task


def _downtime_log(task: Task, log_type: LogType, operator: str, now: datetime) -> ProductionLog:
    return ProductionLog(
        id=new_id("LOG"),
        task_id=task.id,
        machine_id=task.machine_id,
        project_id=task.project_id,
        item_id=task.item_id,
        sub_assembly_id=task.sub_assembly_id,
        step=task.step,
        shift=get_current_shift(now),
        good_qty=0,
        defect_qty=0,
        operator=operator,
        timestamp=now,
        log_type=log_type.value,
    )


def start_task(session: Session, task_id: str) -> Task:
    return _transition(session, get_task(session, task_id), TaskStatus.IN_PROGRESS)


def pause_task(session: Session, task_id: str) -> Task:
    """Operator reassigned away: back to the queue without completion."""
    return _transition(session, get_task(session, task_id), TaskStatus.PAUSED)


def begin_downtime(
    session: Session, task_id: str, operator: str = "SYSTEM", now: Optional[datetime] = None
) -> Task:
    task = get_task(session, task_id)
    now = now or utcnow()
    _transition(session, task, TaskStatus.DOWNTIME)
    session.add(_downtime_log(task, LogType.DOWNTIME_START, operator, now))
    log_event(session, "DOWNTIME_START", f"Task {task.id} ({task.step}) entered downtime")
    return task


def end_downtime(
    session: Session,
    task_id: str,
    increment_minutes: int,
    operator: str = "SYSTEM",
    now: Optional[datetime] = None,
) -> Task:
    """
    Resume after downtime. The counter grows by a fixed increment, not by
    the time actually spent in downtime.
    """
    task = get_task(session, task_id)
    now = now or utcnow()
    task.total_downtime_minutes = (task.total_downtime_minutes or 0) + increment_minutes
    _transition(session, task, TaskStatus.IN_PROGRESS)
    session.add(_downtime_log(task, LogType.DOWNTIME_END, operator, now))
    log_event(
        session,
        "DOWNTIME_END",
        f"Task {task.id} ({task.step}) resumed, downtime now {task.total_downtime_minutes} min",
    )
    return task


def assign_machine(session: Session, task_id: str, machine_id: Optional[str]) -> Task:
    task = get_task(session, task_id)
    if machine_id is not None and session.get(Machine, machine_id) is None:
        raise NotFound("machine", machine_id)
    task.machine_id = machine_id
    return task


def list_tasks(
    session: Session,
    item_id: Optional[str] = None,
    step: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Task]:
    query = select(Task)
    if item_id:
        query = query.where(Task.item_id == item_id)
    if step:
        query = query.where(Task.step == step)
    if status:
        query = query.where(Task.status == status)
    return session.exec(query.order_by(Task.created_at)).all()


def _task_row(session: Session, task: Task, now: datetime, topology: ProcessTopology) -> Dict:
    return {
        "task": task,
        "ready_qty": compute_ready_quantity(session, task, topology),
        "daily_target": daily_target_for_task(session, task, now),
    }


def machine_board(
    session: Session,
    machine_id: str,
    now: Optional[datetime] = None,
    topology: ProcessTopology = DEFAULT_TOPOLOGY,
) -> Dict:
    """
    Station view for one machine: the active task (running or in downtime)
    and the queue of pending / paused tasks.

    At most one task per machine is expected to be active; that is an
    operator convention, so extra active tasks are reported, not rejected.
    """
    machine = session.get(Machine, machine_id)
    if machine is None:
        raise NotFound("machine", machine_id)
    now = now or utcnow()

    tasks = session.exec(
        select(Task).where(Task.machine_id == machine_id).order_by(Task.created_at)
    ).all()
    active = [t for t in tasks if t.status in ACTIVE_STATUSES]
    queued = [t for t in tasks if t.status in QUEUED_STATUSES]
    if len(active) > 1:
        logger.warning("Machine %s has %d active tasks", machine_id, len(active))

    return {
        "machine": machine,
        "active": _task_row(session, active[0], now, topology) if active else None,
        "queue": [_task_row(session, t, now, topology) for t in queued],
        "extra_active": [t.id for t in active[1:]],
    }
