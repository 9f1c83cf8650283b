"""
Correlation token codec
-----------------------
The Discord side and the Self side never share a user id. Instead the Self app
request carries a small JSON record in `userDefinedData`; the provider hands it
back hex-encoded next to the proof, and we recover the pending session from it.

Wire shape (kept stable for links already handed out):
    {"kind": "discord-self-verification", "sessionId": ..., "discordUserId": ..., "guildId": ...}
"""

from __future__ import annotations

import binascii
import json
from dataclasses import dataclass
from typing import Any, Optional

from selfgate.observability.logging import log
from selfgate.store.models import VerificationSession

KIND = "discord-self-verification"


@dataclass(frozen=True)
class CorrelationPayload:
    sessionId: str
    requesterId: str
    originId: str
    kind: str = KIND

    def to_json(self) -> str:
        return json.dumps(
            {
                "kind": self.kind,
                "sessionId": self.sessionId,
                "discordUserId": self.requesterId,
                "guildId": self.originId,
            },
            separators=(",", ":"),
        )


def payload_for(session: VerificationSession) -> CorrelationPayload:
    return CorrelationPayload(
        sessionId=session.sessionId,
        requesterId=session.requesterId,
        originId=session.originId,
    )


def encode(payload: CorrelationPayload) -> str:
    return payload.to_json().encode("utf-8").hex()


def _as_id(v: Any) -> Optional[str]:
    # Snowflakes may come back as numbers if some client re-serialized the record
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return str(v)
    if isinstance(v, str) and v.strip():
        return v.strip()
    return None


def _reject(reason: str, token: Any) -> None:
    raw = token if isinstance(token, str) else repr(token)
    log(
        "verification.userdata_decode_error",
        "Failed to decode userDefinedData from hex JSON",
        reason=reason,
        raw=raw[:200],
    )
    return None


def decode(token: Any) -> Optional[CorrelationPayload]:
    """
    Reverse `encode`. Returns None (and logs) for anything that is not a
    well-formed record of this flow; never raises.
    """
    if not token or not isinstance(token, str):
        return _reject("empty", token)

    text = token.strip()
    if text[:2].lower() == "0x":
        text = text[2:]

    try:
        # userDefinedData is zero-padded to a fixed width by the provider
        raw_bytes = binascii.unhexlify(text).rstrip(b"\x00")
        data = json.loads(raw_bytes.decode("utf-8"))
    except (binascii.Error, ValueError, RecursionError) as e:
        # RecursionError: json.loads on deeply nested arrays/objects
        return _reject(f"malformed:{type(e).__name__}", token)

    if not isinstance(data, dict):
        return _reject("not_an_object", token)

    if data.get("kind") != KIND:
        return _reject("foreign_kind", token)

    session_id = _as_id(data.get("sessionId"))
    requester_id = _as_id(data.get("discordUserId"))
    origin_id = _as_id(data.get("guildId"))
    if not (session_id and requester_id and origin_id):
        return _reject("missing_fields", token)

    return CorrelationPayload(
        sessionId=session_id,
        requesterId=requester_id,
        originId=origin_id,
    )
