from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel


class VerifyRequest(BaseModel):
    # All optional so a partial body gets the friendly 200 error, not a 422
    attestationId: Optional[Any] = None
    proof: Optional[Any] = None
    publicSignals: Optional[Any] = None
    userContextData: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.attestationId and self.proof and self.publicSignals and self.userContextData)


class VerifyResponse(BaseModel):
    status: Literal["success", "error"]
    result: bool
    reason: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    credentialSubject: Optional[Any] = None
    userData: Optional[Any] = None
