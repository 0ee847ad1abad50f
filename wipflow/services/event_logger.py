import json
import logging
import uuid
from typing import Any, Dict, Optional

from sqlmodel import Session

from ..models.events import Event
from ..utils.helpers import utcnow

logger = logging.getLogger(__name__)


def log_event(
    session: Session,
    event_type: str,
    description: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Event:
    eid = f"EVT-{uuid.uuid4().hex}"
    e = Event(
        event_id=eid,
        event_type=event_type,
        description=description,
        event_date=utcnow(),
        metadata_json=json.dumps(metadata) if metadata else None,
    )
    session.add(e)
    logger.info("%s: %s", event_type, description)
    return e
