import time
from typing import Any, Dict

import httpx

from selfgate.core.errors import VerifierError
from selfgate.observability.logging import log


class SelfVerifierClient:
    """
    Thin client for the external Self proof verifier. Cryptographic checks happen
    there; we only forward the proof along with our acceptance configuration and
    hand back the raw result.
    """

    def __init__(
        self,
        url: str,
        *,
        scope: str = "",
        endpoint: str = "",
        minimum_age: int = 18,
        ofac: bool = True,
        mock_passport: bool = False,
        timeout_sec: float = 15.0,
    ) -> None:
        self.url = url
        self.scope = scope
        self.endpoint = endpoint
        self.minimum_age = minimum_age
        self.ofac = ofac
        self.mock_passport = mock_passport
        self.timeout_sec = timeout_sec

    def config(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "endpoint": self.endpoint,
            "mockPassport": self.mock_passport,
            "minimumAge": self.minimum_age,
            "ofac": self.ofac,
            "userIdentifierType": "hex",
        }

    async def verify(
        self,
        attestation_id: Any,
        proof: Any,
        public_signals: Any,
        user_context_data: str,
    ) -> Dict[str, Any]:
        if not self.url:
            raise VerifierError("SELF_VERIFIER_URL is not set")

        body = {
            "attestationId": attestation_id,
            "proof": proof,
            "publicSignals": public_signals,
            "userContextData": user_context_data,
            "config": self.config(),
        }

        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec) as client:
                resp = await client.post(self.url, json=body)
        except httpx.HTTPError as e:
            log(
                "verifier.exception",
                "Verifier request failed",
                errorType=type(e).__name__,
                error=str(e)[:500],
                elapsedMs=int((time.monotonic() - start) * 1000),
            )
            raise VerifierError(f"Verifier unreachable: {type(e).__name__}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if not (200 <= resp.status_code < 300):
            log(
                "verifier.non2xx",
                "Verifier answered with an error status",
                statusCode=int(resp.status_code),
                elapsedMs=elapsed_ms,
                responseText=(resp.text or "")[:500],
            )
            raise VerifierError(f"Verifier returned {resp.status_code}")

        try:
            result = resp.json()
        except ValueError as e:
            raise VerifierError("Verifier returned a non-JSON body") from e
        if not isinstance(result, dict):
            raise VerifierError("Verifier returned an unexpected body")

        log(
            "verifier.result",
            "Verifier answered",
            attestationId=result.get("attestationId", attestation_id),
            elapsedMs=elapsed_ms,
        )
        return result
