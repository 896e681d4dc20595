"""Claim schemas - the transient input and output of a presence validation."""

from typing import List, Optional
from pydantic import BaseModel, Field

from presence_guard.data.schemas.device import DeviceAttributes
from presence_guard.data.schemas.location import LocationSample


class Claim(BaseModel):
    """One attempt by a user to prove presence at a target.

    ``samples`` may hold any number of readings; fewer than the policy
    minimum is an ordinary rejection (INSUFFICIENT_SAMPLES), not a shape
    error.
    """
    user_id: str = Field(..., min_length=1)
    tag_id: str = Field(..., min_length=1)
    challenge_id: str = Field(..., min_length=1)
    nonce: str = Field(..., min_length=1)
    samples: List[LocationSample] = Field(default_factory=list)
    device_attributes: DeviceAttributes = Field(default_factory=DeviceAttributes)
    client_fingerprint_hint: Optional[str] = Field(
        default=None, description="Fingerprint id the client computed, informational only"
    )
    session_id: Optional[str] = Field(default=None)
    ip_address: Optional[str] = Field(default=None)
    flow: str = Field(default="visit", description="Entry point policy name")


class RewardGrant(BaseModel):
    """Reward granted for an accepted claim, with the user's new totals."""
    points: int = Field(..., ge=0)
    xp: int = Field(..., ge=0)
    total_points: int = Field(..., ge=0)
    total_xp: int = Field(..., ge=0)


class ClaimDecision(BaseModel):
    """Decided outcome of a claim."""
    accepted: bool
    confidence: int = Field(..., ge=0, le=100)
    reason: Optional[str] = Field(default=None)
    flags: List[str] = Field(default_factory=list)
    distance_m: Optional[float] = Field(default=None, ge=0)
    retry_after_seconds: Optional[int] = Field(default=None, ge=0)
    reward: Optional[RewardGrant] = Field(default=None)
    audit_id: Optional[str] = Field(default=None)
    visit_id: Optional[str] = Field(default=None)

    model_config = {
        "json_schema_extra": {
            "example": {
                "accepted": True,
                "confidence": 100,
                "reason": None,
                "flags": [],
                "distance_m": 3.2,
                "reward": {"points": 10, "xp": 25, "total_points": 140, "total_xp": 610},
                "audit_id": "aud_1a2b3c4d5e6f",
                "visit_id": "vis_6f5e4d3c2b1a",
            }
        }
    }
