# wipflow/api/projects.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from ..database import get_session
from ..services import projects as project_service
from ..services.engine import ProductionEngine, get_production_engine
from .deps import require

router = APIRouter(prefix="/api", tags=["projects"])


# ============ Request Models ============

class ProjectRequest(BaseModel):
    code: str
    name: str
    customer: str = ""
    start_date: date
    deadline: date


class ItemRequest(BaseModel):
    name: str
    quantity: int
    unit: str = "PCS"


class SubAssemblyRequest(BaseModel):
    name: str
    qty_per_parent: int = 1
    total_needed: int
    processes: List[str]


class SubAssemblyUpdate(BaseModel):
    name: Optional[str] = None
    qty_per_parent: Optional[int] = None
    total_needed: Optional[int] = None
    processes: Optional[List[str]] = None


class WorkflowStepRequest(BaseModel):
    step: str
    machine_id: Optional[str] = None
    target_qty: Optional[int] = None
    note: Optional[str] = None


class WorkflowRequest(BaseModel):
    steps: List[WorkflowStepRequest]


class MachineRequest(BaseModel):
    code: str
    name: str
    step: str
    capacity_per_hour: int = 0


# ============ Projects, items, machines ============

@router.post("/projects")
def create_project(
    request: ProjectRequest,
    _: str = Depends(require("PROJECTS", "create")),
    session: Session = Depends(get_session),
):
    project = project_service.create_project(
        session, request.code, request.name, request.start_date, request.deadline, request.customer
    )
    session.commit()
    return project


@router.post("/projects/{project_id}/items")
def create_item(
    project_id: str,
    request: ItemRequest,
    _: str = Depends(require("PROJECTS", "create")),
    session: Session = Depends(get_session),
):
    item = project_service.create_item(session, project_id, request.name, request.quantity, request.unit)
    session.commit()
    return item


@router.post("/machines")
def create_machine(
    request: MachineRequest,
    _: str = Depends(require("MACHINES", "create")),
    session: Session = Depends(get_session),
):
    machine = project_service.create_machine(
        session, request.code, request.name, request.step, request.capacity_per_hour
    )
    session.commit()
    return machine


# ============ Sub-assemblies (item scoped, under the item lock) ============

@router.post("/items/{item_id}/sub-assemblies")
def add_sub_assembly(
    item_id: str,
    request: SubAssemblyRequest,
    _: str = Depends(require("PROJECTS", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    with engine.unit_of_work(item_id) as session:
        return project_service.add_sub_assembly(
            session, item_id, request.name, request.qty_per_parent,
            request.total_needed, request.processes, topology=engine.topology,
        )


@router.put("/items/{item_id}/sub-assemblies/{sa_id}")
def update_sub_assembly(
    item_id: str,
    sa_id: str,
    request: SubAssemblyUpdate,
    _: str = Depends(require("PROJECTS", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    with engine.unit_of_work(item_id) as session:
        return project_service.update_sub_assembly(
            session, item_id, sa_id,
            name=request.name,
            qty_per_parent=request.qty_per_parent,
            total_needed=request.total_needed,
            processes=request.processes,
            topology=engine.topology,
        )


@router.post("/items/{item_id}/sub-assemblies/{sa_id}/lock")
def lock_sub_assembly(
    item_id: str,
    sa_id: str,
    _: str = Depends(require("PROJECTS", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    with engine.unit_of_work(item_id) as session:
        return project_service.lock_sub_assembly(session, item_id, sa_id)


@router.delete("/items/{item_id}/sub-assemblies/{sa_id}")
def delete_sub_assembly(
    item_id: str,
    sa_id: str,
    _: str = Depends(require("PROJECTS", "delete")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    with engine.unit_of_work(item_id) as session:
        project_service.delete_sub_assembly(session, item_id, sa_id)
    return {"status": "deleted", "sub_assembly_id": sa_id}


# ============ Workflow ============

@router.post("/items/{item_id}/workflow")
def configure_workflow(
    item_id: str,
    request: WorkflowRequest,
    _: str = Depends(require("PROJECTS", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    steps = [
        project_service.WorkflowStepConfig(
            step=s.step, machine_id=s.machine_id, target_qty=s.target_qty, note=s.note
        )
        for s in request.steps
    ]
    with engine.unit_of_work(item_id) as session:
        return project_service.configure_workflow(session, item_id, steps, topology=engine.topology)


@router.delete("/items/{item_id}/workflow")
def unlock_workflow(
    item_id: str,
    _: str = Depends(require("PROJECTS", "edit")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    with engine.unit_of_work(item_id) as session:
        return project_service.unlock_workflow(session, item_id)
