from datetime import datetime, timezone
from typing import Optional

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive values, some backends hand stored timestamps back without tzinfo."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
