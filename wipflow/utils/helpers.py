# wipflow/utils/helpers.py
import uuid
from datetime import datetime, timezone


def get_current_shift(now: datetime) -> str:
    """
    Simple shift logic:
    SHIFT_1: 06:00-14:00
    SHIFT_2: 14:00-22:00
    SHIFT_3: 22:00-06:00
    """
    h = now.hour
    if 6 <= h < 14:
        return "SHIFT_1"
    elif 14 <= h < 22:
        return "SHIFT_2"
    return "SHIFT_3"


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"

def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)
