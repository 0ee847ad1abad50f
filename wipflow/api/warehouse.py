# wipflow/api/warehouse.py

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from ..database import get_session
from ..services import warehouse as warehouse_service
from ..services.engine import ProductionEngine, get_production_engine
from .deps import require

router = APIRouter(prefix="/api/warehouse", tags=["warehouse"])


class ValidateRequest(BaseModel):
    item_id: str
    qty: int
    operator: Optional[str] = None


@router.get("")
def get_warehouse(session: Session = Depends(get_session)):
    """
    Per item: pending_validation (packed, not yet validated),
    warehouse_qty, shipped_qty and on_hand stock.
    """
    return warehouse_service.warehouse_view(session)


@router.post("/validate")
def validate(
    request: ValidateRequest,
    operator: str = Depends(require("WAREHOUSE", "create")),
    engine: ProductionEngine = Depends(get_production_engine),
):
    entry = engine.validate_to_warehouse(request.item_id, request.qty, request.operator or operator)
    return {"item": entry.item, "log": entry.log, "packing": entry.packing}


@router.get("/{item_id}/history")
def history(item_id: str, session: Session = Depends(get_session)):
    return warehouse_service.warehouse_history(session, item_id)
