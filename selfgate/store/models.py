from dataclasses import dataclass
from typing import Optional

@dataclass(frozen=True)
class VerificationSession:
    sessionId: str
    requesterId: str          # Discord user id
    originId: str             # Discord guild id
    createdAtMs: int
    # Name of the rendered QR attachment; owned by the renderer, not the registry
    auxiliaryRef: Optional[str] = None

    def age_seconds(self, now_ms: int) -> float:
        return max(0, now_ms - self.createdAtMs) / 1000.0

@dataclass(frozen=True)
class ShortLinkEntry:
    code: str
    target: str
