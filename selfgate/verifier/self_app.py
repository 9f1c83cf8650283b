"""
Self app request + universal link.

The Self mobile app reads this request (from the QR code or the deep link),
builds the proof and POSTs it to `endpoint`. `userDefinedData` is echoed back to
us hex-encoded inside the verification result, which is how the callback finds
its pending session.
"""

import json
import uuid
from typing import Any, Dict
from urllib.parse import quote

from selfgate.core.errors import LinkBuildError

REDIRECT_URL = "https://redirect.self.xyz"


def discord_user_id_hex(discord_user_id: str) -> str:
    """Discord snowflake as the 20-byte hex user id the Self app expects."""
    hex_id = format(int(discord_user_id), "x").rjust(40, "0")
    return "0x" + hex_id[:40]


def build_self_app(
    *,
    endpoint: str,
    discord_user_id: str,
    user_defined_data: str,
    app_name: str,
    logo_url: str,
    scope: str = "",
    minimum_age: int = 18,
    ofac: bool = True,
    mock_passport: bool = False,
) -> Dict[str, Any]:
    if not endpoint:
        raise LinkBuildError("SELF_ENDPOINT must be configured")

    disclosures: Dict[str, Any] = {"minimumAge": int(minimum_age)}
    if ofac:
        disclosures["ofac"] = True

    return {
        "version": 2,
        "appName": app_name,
        "logoBase64": logo_url,
        "scope": scope,
        # Transport session for the Self app itself; unrelated to our registry id
        "sessionId": str(uuid.uuid4()),
        "endpoint": endpoint,
        "endpointType": "staging_https" if mock_passport else "https",
        "userId": discord_user_id_hex(discord_user_id),
        "userIdType": "hex",
        "userDefinedData": user_defined_data,
        "disclosures": disclosures,
        "devMode": bool(mock_passport),
        "header": "",
    }


def universal_link(self_app: Dict[str, Any]) -> str:
    body = json.dumps(self_app, separators=(",", ":"))
    return f"{REDIRECT_URL}?selfApp={quote(body, safe='')}"
