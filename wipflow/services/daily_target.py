# wipflow/services/daily_target.py

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from sqlmodel import Session

from ..models.master import Project
from ..models.production import Task
from ..utils.helpers import utcnow

ONE_DAY = timedelta(days=1)


def _as_datetime(value: Union[date, datetime]) -> datetime:
    # Deadlines are calendar dates; compare in naive UTC.
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time.min)


def days_left(deadline: Union[date, datetime], now: datetime) -> int:
    """Whole days until the deadline, never less than 1."""
    remaining = _as_datetime(deadline) - _as_datetime(now)
    return max(1, math.ceil(remaining / ONE_DAY))


def compute_daily_target(task: Task, deadline: Union[date, datetime], now: datetime) -> int:
    """
    ceil(remaining / days_left). Advisory only, never stored.

    A task already at or over target needs 0 per day.
    """
    remaining = max(0, task.target_qty - task.completed_qty)
    return math.ceil(remaining / days_left(deadline, now))


def daily_target_for_task(session: Session, task: Task, now: Optional[datetime] = None) -> int:
    project = session.get(Project, task.project_id)
    if project is None:
        return 0
    return compute_daily_target(task, project.deadline, now or utcnow())
