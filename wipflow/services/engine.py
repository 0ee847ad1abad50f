# wipflow/services/engine.py
"""
ProductionEngine: the operations the rest of the system calls.

The engine owns no entity state. It is handed a session factory (the
repository), a topology and a lock registry, and runs each mutating
operation as one unit of work:

    hold the owning item's lock
      -> open a session
      -> apply every effect
      -> commit (or roll back everything and re-raise)

Reads take the same lock so they never see a report half-applied.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Callable, Iterator, Optional, Union

from sqlmodel import Session

from ..config import Settings, settings as default_settings
from ..database import new_session
from ..models.production import Task
from . import daily_target, production, readiness, tasks, warehouse
from .errors import NotFound
from .locks import EntityLocks
from .topology import DEFAULT_TOPOLOGY, ProcessTopology

logger = logging.getLogger(__name__)


class ProductionEngine:
    def __init__(
        self,
        session_factory: Callable[[], Session] = new_session,
        topology: ProcessTopology = DEFAULT_TOPOLOGY,
        locks: Optional[EntityLocks] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session_factory = session_factory
        self.topology = topology
        self.locks = locks or EntityLocks()
        self.settings = settings or default_settings

    # ---------- plumbing ----------

    @contextmanager
    def unit_of_work(self, item_id: str) -> Iterator[Session]:
        with self.locks.hold(item_id):
            session = self.session_factory()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def _item_of_task(self, task_id: str) -> str:
        # A task never changes owner, so this lookup can run before locking.
        with self.session_factory() as session:
            task = session.get(Task, task_id)
            if task is None:
                raise NotFound("task", task_id)
            return task.item_id

    # ---------- production ----------

    def report_production(
        self,
        task_id: str,
        good_qty: int,
        defect_qty: int,
        shift: str,
        operator: str,
        now: Optional[datetime] = None,
    ) -> production.ProductionReport:
        item_id = self._item_of_task(task_id)
        with self.unit_of_work(item_id) as session:
            return production.report_production(
                session, task_id, good_qty, defect_qty, shift, operator,
                topology=self.topology, now=now,
            )

    def compute_ready_quantity(self, task: Union[Task, str]) -> int:
        task_id = task.id if isinstance(task, Task) else task
        try:
            item_id = self._item_of_task(task_id)
        except NotFound:
            return 0
        with self.locks.hold(item_id), self.session_factory() as session:
            return readiness.compute_ready_quantity(session, session.get(Task, task_id), self.topology)

    def check_overshoot(self, task_id: str, good_qty: int, defect_qty: int) -> int:
        """
        Raise SoftOvershoot when the input exceeds readiness; otherwise return readiness.

        Bad quantities and unknown tasks fail with InvalidInput / NotFound first.
        """
        production.validate_quantities(good_qty, defect_qty)
        self._item_of_task(task_id)
        ready = self.compute_ready_quantity(task_id)
        production.check_overshoot(ready, good_qty, defect_qty)
        return ready

    # ---------- warehouse ----------

    def validate_to_warehouse(
        self, item_id: str, qty: int, operator: str = "Admin", now: Optional[datetime] = None
    ) -> warehouse.WarehouseEntry:
        with self.unit_of_work(item_id) as session:
            return warehouse.validate_to_warehouse(
                session, item_id, qty, operator, topology=self.topology, now=now
            )

    # ---------- daily target ----------

    @staticmethod
    def compute_daily_target(task: Task, deadline: Union[date, datetime], now: datetime) -> int:
        return daily_target.compute_daily_target(task, deadline, now)

    # ---------- task lifecycle ----------

    def start(self, task_id: str) -> Task:
        with self.unit_of_work(self._item_of_task(task_id)) as session:
            return tasks.start_task(session, task_id)

    def pause(self, task_id: str) -> Task:
        with self.unit_of_work(self._item_of_task(task_id)) as session:
            return tasks.pause_task(session, task_id)

    def begin_downtime(self, task_id: str, operator: str = "SYSTEM") -> Task:
        with self.unit_of_work(self._item_of_task(task_id)) as session:
            return tasks.begin_downtime(session, task_id, operator)

    def end_downtime(self, task_id: str, operator: str = "SYSTEM") -> Task:
        with self.unit_of_work(self._item_of_task(task_id)) as session:
            return tasks.end_downtime(
                session, task_id, self.settings.downtime_increment_minutes, operator
            )

    def assign_machine(self, task_id: str, machine_id: Optional[str]) -> Task:
        with self.unit_of_work(self._item_of_task(task_id)) as session:
            return tasks.assign_machine(session, task_id, machine_id)


_engine: Optional[ProductionEngine] = None


def get_production_engine() -> ProductionEngine:
    """Process-wide engine used by the API; tests override this dependency."""
    global _engine
    if _engine is None:
        _engine = ProductionEngine()
    return _engine
