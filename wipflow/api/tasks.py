# wipflow/api/tasks.py

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from ..database import get_session
from ..services import tasks as task_service
from ..services.engine import ProductionEngine, get_production_engine
from .deps import require

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


class MachineAssignment(BaseModel):
    machine_id: Optional[str] = None


@router.get("")
def list_tasks(
    item_id: Optional[str] = None,
    step: Optional[str] = None,
    status: Optional[str] = None,
    session: Session = Depends(get_session),
):
    return task_service.list_tasks(session, item_id=item_id, step=step, status=status)


@router.get("/board/{machine_id}")
def machine_board(machine_id: str, session: Session = Depends(get_session)):
    """Active task and queue for one station, with ready quantity and daily target."""
    return task_service.machine_board(session, machine_id)


@router.post("/{task_id}/start")
def start_task(
    task_id: str,
    _: str = Depends(require("PRODUCTION", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    return engine.start(task_id)


@router.post("/{task_id}/pause")
def pause_task(
    task_id: str,
    _: str = Depends(require("PRODUCTION", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    return engine.pause(task_id)


@router.post("/{task_id}/downtime/begin")
def begin_downtime(
    task_id: str,
    operator: str = Depends(require("PRODUCTION", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    return engine.begin_downtime(task_id, operator)


@router.post("/{task_id}/downtime/end")
def end_downtime(
    task_id: str,
    operator: str = Depends(require("PRODUCTION", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    return engine.end_downtime(task_id, operator)


@router.post("/{task_id}/machine")
def assign_machine(
    task_id: str,
    request: MachineAssignment,
    _: str = Depends(require("PRODUCTION", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    return engine.assign_machine(task_id, request.machine_id)
