from fastapi import APIRouter, Depends, HTTPException, Header

from selfgate.api.deps import get_engine
from selfgate.core.engine import VerificationEngine
from selfgate.settings import settings
from selfgate.utils.time import iso_from_ms, now_ms

router = APIRouter(prefix="/admin", tags=["admin"])

def require_admin(x_admin_key: str = Header(default="", alias="x-admin-key")):
    if not settings.ADMIN_RBAC_ENABLED:
        return
    # Secure default: if enabled but no key configured, reject all.
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Admin access disabled (no key configured)")
    if x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid admin key")

@router.get("/session/{session_id}")
def get_session_snapshot(session_id: str, engine: VerificationEngine = Depends(get_engine), _=Depends(require_admin)):
    """Pending-session snapshot. Consumed, expired and unknown ids all read as not pending."""
    s = engine.registry.lookup(session_id)
    if s is None:
        return {"sessionId": session_id, "pending": False}
    return {
        "sessionId": s.sessionId,
        "pending": True,
        "discordUserId": s.requesterId,
        "guildId": s.originId,
        "createdAt": iso_from_ms(s.createdAtMs),
        "ageSec": round(s.age_seconds(now_ms()), 3),
        "expiresInSec": max(0.0, round(engine.config.session_ttl_sec - s.age_seconds(now_ms()), 3)),
        "qrName": s.auxiliaryRef,
    }

@router.get("/stats")
def get_stats(engine: VerificationEngine = Depends(get_engine), _=Depends(require_admin)):
    return {
        "pendingSessions": len(engine.registry),
        "shortLinks": len(engine.shortlinks),
        "sessionTtlSec": engine.config.session_ttl_sec,
        "deliveryMode": engine.config.delivery_mode,
    }
