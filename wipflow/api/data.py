# wipflow/api/data.py

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from ..database import get_session
from ..models.events import Event
from ..models.master import Machine, Project, ProjectItem
from ..services.projects import item_detail

router = APIRouter(prefix="/api/data", tags=["data"])


# ---------- master lookups ----------

@router.get("/projects")
def get_projects(session: Session = Depends(get_session)):
    return session.exec(select(Project)).all()


@router.get("/items")
def get_items(session: Session = Depends(get_session)):
    return session.exec(select(ProjectItem)).all()


@router.get("/items/{item_id}")
def get_item(item_id: str, session: Session = Depends(get_session)):
    """Item with its ledger, its sub-assemblies and their ledgers."""
    return item_detail(session, item_id)


@router.get("/machines")
def get_machines(session: Session = Depends(get_session)):
    return session.exec(select(Machine)).all()


# ---------- events (event log) ----------

@router.get("/events")
def get_events(session: Session = Depends(get_session), limit: int = 100):
    """
    Recent events from the Event table (used as event log).
    """
    events = session.exec(
        select(Event).order_by(Event.event_date.desc()).limit(limit)
    ).all()
    return events
