import time
from datetime import datetime, timezone

def now_ms() -> int:
    return int(time.time() * 1000)

def iso_from_ms(ms: int) -> str:
    """Render an epoch-millisecond timestamp as UTC ISO-8601 (for admin views)."""
    return datetime.fromtimestamp(int(ms) / 1000, tz=timezone.utc).isoformat()
