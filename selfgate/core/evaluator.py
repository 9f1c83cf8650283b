from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping


class ReasonCode(str, Enum):
    NONE = "none"
    INVALID_PROOF = "invalid_proof"
    AGE_BELOW_MINIMUM = "age_below_minimum"
    SANCTIONS_MATCH = "sanctions_match"


REASON_TEXT = {
    ReasonCode.NONE: "",
    ReasonCode.INVALID_PROOF: "Verification failed",
    ReasonCode.AGE_BELOW_MINIMUM: "Minimum age verification failed",
    ReasonCode.SANCTIONS_MATCH: "User is in OFAC sanctions list",
}


@dataclass(frozen=True)
class EvaluationPolicy:
    # Off only for deployments that do not request the OFAC disclosure
    enforce_ofac: bool = True


@dataclass(frozen=True)
class VerificationOutcome:
    accepted: bool
    reasonCode: ReasonCode
    isValid: bool = False
    isMinimumAgeValid: bool = False
    isOfacValid: bool = False
    disclosed: Dict[str, Any] = field(default_factory=dict)

    @property
    def reason(self) -> str:
        return REASON_TEXT[self.reasonCode]

    def details(self) -> Dict[str, bool]:
        return {
            "isValid": self.isValid,
            "isMinimumAgeValid": self.isMinimumAgeValid,
            "isOfacValid": self.isOfacValid,
        }


def _flag(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        return v.strip().lower() in ("true", "1", "yes")
    return bool(v)


def evaluate(raw: Mapping[str, Any], policy: EvaluationPolicy = EvaluationPolicy()) -> VerificationOutcome:
    """
    Classify a raw verifier result. Accepts either the Self backend shape
    (flags under `isValidDetails`) or the flags at top level.

    Precedence: invalid proof, then age, then sanctions. A missing validity or
    age flag counts as a failure; a missing sanctions flag counts as no match.
    Note `isOfacValid` is True when the user IS on the list.
    """
    raw = raw or {}
    details = raw.get("isValidDetails")
    if not isinstance(details, Mapping):
        details = raw

    is_valid = _flag(details.get("isValid", False))
    age_ok = _flag(details.get("isMinimumAgeValid", False))
    ofac_hit = _flag(details.get("isOfacValid", False))
    disclosed = raw.get("discloseOutput")
    disclosed = dict(disclosed) if isinstance(disclosed, Mapping) else {}

    if not is_valid:
        code = ReasonCode.INVALID_PROOF
    elif not age_ok:
        code = ReasonCode.AGE_BELOW_MINIMUM
    elif ofac_hit and policy.enforce_ofac:
        code = ReasonCode.SANCTIONS_MATCH
    else:
        code = ReasonCode.NONE

    return VerificationOutcome(
        accepted=code is ReasonCode.NONE,
        reasonCode=code,
        isValid=is_valid,
        isMinimumAgeValid=age_ok,
        isOfacValid=ofac_hit,
        disclosed=disclosed,
    )
