import html
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from pydantic import ValidationError

from selfgate.api.deps import get_engine, get_verifier
from selfgate.api.schemas import VerifyRequest, VerifyResponse
from selfgate.core.engine import VerificationEngine
from selfgate.observability.logging import error_text, log
from selfgate.settings import settings
from selfgate.verifier.client import SelfVerifierClient

router = APIRouter()

MISSING_FIELDS_REASON = "Proof, publicSignals, attestationId and userContextData are required"


@router.get("/")
def root():
    return {
        "status": "ok",
        "message": "Self verification backend + Discord verifier bot (offchain)",
        "verifyEndpoint": "/api/verify",
        "endpoint": settings.SELF_ENDPOINT,
    }


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/v/{code}")
def short_link_redirect(code: str, engine: VerificationEngine = Depends(get_engine)):
    long_url = engine.shortlinks.resolve(code)
    if not long_url:
        return PlainTextResponse("Link not found or expired", status_code=404)

    log("shorturl.redirect", "Redirecting short URL", code=code, longUrl=long_url[:100] + "...")
    return RedirectResponse(long_url, status_code=302)


@router.post("/api/verify", response_model=VerifyResponse, response_model_exclude_none=True)
async def verify(
    request: Request,
    payload: Any = Body(None),
    engine: VerificationEngine = Depends(get_engine),
    verifier: SelfVerifierClient = Depends(get_verifier),
):
    """
    Proof submission from the Self app. Always answers 200: the provider only
    needs to know whether the proof passed, never whether Discord cooperated.
    """
    if payload is None:
        try:
            payload = await request.json()
        except Exception:
            payload = {}

    try:
        req = VerifyRequest.model_validate(payload if isinstance(payload, dict) else {})
    except ValidationError:
        req = VerifyRequest()

    if not req.is_complete():
        return VerifyResponse(status="error", result=False, reason=MISSING_FIELDS_REASON)

    try:
        raw = await verifier.verify(req.attestationId, req.proof, req.publicSignals, req.userContextData)
    except Exception as e:
        log(
            "verification.error",
            "Exception while verifying Self proof",
            errorType=type(e).__name__,
            error=error_text(e),
        )
        return VerifyResponse(status="error", result=False, reason=error_text(e) or "Unknown verification error")

    outcome = engine.evaluate(raw)
    user_data = raw.get("userData") if isinstance(raw.get("userData"), dict) else {}
    token: Optional[str] = user_data.get("userDefinedData")

    status = await engine.complete(token, raw)

    if not outcome.accepted:
        log(
            "verification.failed",
            "Self verification failed",
            attestationId=raw.get("attestationId"),
            reasonCode=outcome.reasonCode.value,
            completion=status.value,
            **outcome.details(),
        )
        return VerifyResponse(
            status="error",
            result=False,
            reason=outcome.reason,
            details=outcome.details(),
        )

    log(
        "verification.succeeded",
        "Self verification succeeded",
        attestationId=raw.get("attestationId"),
        completion=status.value,
    )
    return VerifyResponse(
        status="success",
        result=True,
        credentialSubject=outcome.disclosed or None,
        userData=raw.get("userData"),
    )


CALLBACK_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Verification Status - Self.xyz</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
           background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); min-height: 100vh;
           display: flex; align-items: center; justify-content: center; padding: 20px; margin: 0; }}
    .container {{ background: white; border-radius: 20px; padding: 40px; max-width: 500px;
                 width: 100%; box-shadow: 0 20px 60px rgba(0,0,0,0.3); text-align: center; }}
    h1 {{ color: #333; font-size: 28px; margin-bottom: 15px; }}
    p {{ color: #666; font-size: 16px; line-height: 1.6; }}
    .status {{ background: #f0f7ff; border-left: 4px solid #667eea; padding: 15px;
              border-radius: 8px; margin: 20px 0; text-align: left; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Proof submitted</h1>
    <p>Your proof has been sent for verification. If it passes, the bot will grant your role
       and DM you in Discord within a few moments.</p>
    <div class="status"><strong>Session:</strong> {session}</div>
    <p style="font-size: 14px; color: #999;">You can close this page and return to Discord.</p>
  </div>
</body>
</html>
"""


@router.get("/callback", response_class=HTMLResponse)
def mobile_return(request: Request, session: Optional[str] = None):
    """Landing page for members coming back from the Self app on mobile."""
    log(
        "callback.mobile_return",
        "Mobile user returned from Self app",
        sessionId=session,
        userAgent=request.headers.get("user-agent"),
    )
    return CALLBACK_PAGE.format(session=html.escape(session or "Unknown"))
