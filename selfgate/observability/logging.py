import json
import os
import sys
from datetime import datetime, timezone
from selfgate.settings import settings

# Proof material never needs to be readable in the audit trail
SENSITIVE_KEYS = {"proof", "publicSignals", "userContextData", "raw"}

def _redact_value(v):
    if isinstance(v, str) and len(v) > 0:
        return f"[REDACTED:{len(v)}chars]"
    if isinstance(v, (list, tuple)):
        return f"[REDACTED:{len(v)}items]"
    if isinstance(v, dict):
        return {k: _redact_value(val) for k, val in v.items()}
    return v

def _append_line(path: str, line: str) -> None:
    try:
        folder = os.path.dirname(path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(line + "\n")
    except OSError as e:
        print(f"Failed to write log line: {e}", file=sys.stderr)

def log(event: str, message: str = "", **fields):
    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event,
        "message": message,
    }

    if settings.ENABLE_LOG_REDACTION:
        clean_fields = {}
        for k, v in fields.items():
            if k in SENSITIVE_KEYS:
                clean_fields[k] = _redact_value(v)
            elif isinstance(v, dict):
                clean_fields[k] = {sk: (_redact_value(sv) if sk in SENSITIVE_KEYS else sv) for sk, sv in v.items()}
            else:
                clean_fields[k] = v
        payload.update(clean_fields)
    else:
        payload.update(fields)

    line = json.dumps(payload, ensure_ascii=False, default=str)
    print(line)
    if settings.EVENT_LOG_PATH:
        _append_line(settings.EVENT_LOG_PATH, line)

def error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
