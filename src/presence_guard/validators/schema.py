"""Validator Output Schemas.

Every validator returns a CheckOutput: a fatal precondition layer decides
``fatal``/``reason``, a penalty layer decides ``confidence``/``flags``.
The orchestrator combines them by minimum.
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from presence_guard.data.schemas.device import DeviceFingerprint


class CheckOutput(BaseModel):
    """Output of a single validation step."""

    valid: bool = Field(..., description="Step passed: not fatal and confidence at or above the minimum")
    confidence: int = Field(..., ge=0, le=100, description="Step confidence after penalties")
    flags: List[str] = Field(default_factory=list, description="Deduplicated flags raised by the step")
    reason: Optional[str] = Field(default=None, description="Rejection reason when not valid")
    fatal: bool = Field(default=False, description="A fatal precondition fired")

    model_config = {
        "json_schema_extra": {
            "example": {
                "valid": True,
                "confidence": 70,
                "flags": ["LOW_ACCURACY"],
                "reason": None,
                "fatal": False,
            }
        }
    }

    @classmethod
    def rejected(cls, reason: str, flags: Optional[List[str]] = None, **extra) -> "CheckOutput":
        """Fatal rejection with zero confidence."""
        return cls(
            valid=False,
            confidence=0,
            flags=dedupe_flags((flags or []) + [reason]),
            reason=reason,
            fatal=True,
            **extra,
        )


class ProximityOutput(CheckOutput):
    distance_m: float = Field(..., ge=0, description="Distance from the latest sample to the target")


class RateLimitOutput(CheckOutput):
    retry_after_seconds: Optional[int] = Field(default=None, ge=0)
    user_claims_last_hour: int = Field(default=0, ge=0)


class FingerprintOutput(CheckOutput):
    fingerprint: DeviceFingerprint
    changes: List[str] = Field(
        default_factory=list,
        description="Components that differ from the most recent known device"
    )


def dedupe_flags(flags: List[str]) -> List[str]:
    """Remove duplicate flags, keeping first-seen order."""
    return list(dict.fromkeys(flags))


def clamp_confidence(value: float) -> int:
    return int(max(0, min(100, round(value))))
