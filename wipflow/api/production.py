# wipflow/api/production.py

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from ..database import get_session
from ..models.production import ProductionLog, Task
from ..services.daily_target import daily_target_for_task
from ..services.engine import ProductionEngine, get_production_engine
from ..utils.helpers import get_current_shift
from .deps import require

router = APIRouter(prefix="/api/production", tags=["production"])


class ReportRequest(BaseModel):
    task_id: str
    good_qty: int = 0
    defect_qty: int = 0
    shift: Optional[str] = None
    operator: Optional[str] = None
    confirm_overshoot: bool = False


@router.post("/report")
def report_production(
    request: ReportRequest,
    operator: str = Depends(require("PRODUCTION", "create")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    """
    Record good / defect output against a task.

    When the input exceeds the task's ready quantity the call answers 409
    with the ready figure; resend with confirm_overshoot=true to accept it.
    """
    if not request.confirm_overshoot:
        engine.check_overshoot(request.task_id, request.good_qty, request.defect_qty)

    report = engine.report_production(
        request.task_id,
        request.good_qty,
        request.defect_qty,
        request.shift or get_current_shift(datetime.now()),
        request.operator or operator,
    )
    return {
        "task": report.task,
        "log": report.log,
        "item_ledger": report.item_ledger,
        "sub_assemblies": report.sub_assemblies,
        "sub_assembly_ledgers": report.sub_assembly_ledgers,
    }


def _task_or_404(session: Session, task_id: str) -> Task:
    task = session.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=404, detail=f"task {task_id} not found")
    return task


@router.get("/tasks/{task_id}/ready")
def get_ready_quantity(
    task_id: str,
    session: Session = Depends(get_session),
    engine: ProductionEngine = Depends(get_production_engine),
):
    _task_or_404(session, task_id)
    return {"task_id": task_id, "ready_qty": engine.compute_ready_quantity(task_id)}


@router.get("/tasks/{task_id}/daily-target")
def get_daily_target(task_id: str, session: Session = Depends(get_session)):
    task = _task_or_404(session, task_id)
    return {"task_id": task_id, "daily_target": daily_target_for_task(session, task)}


@router.get("/logs")
def get_logs(
    item_id: Optional[str] = None,
    task_id: Optional[str] = None,
    limit: int = 100,
    session: Session = Depends(get_session),
):
    """Production log, newest first."""
    query = select(ProductionLog)
    if item_id:
        query = query.where(ProductionLog.item_id == item_id)
    if task_id:
        query = query.where(ProductionLog.task_id == task_id)
    return session.exec(query.order_by(ProductionLog.timestamp.desc()).limit(limit)).all()
