"""Persistent records - audit trail, visits and reward ledger."""

from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4
from pydantic import BaseModel, Field

from presence_guard.data.schemas.device import DeviceAttributes
from presence_guard.data.schemas.location import LocationSample


class AuditRecord(BaseModel):
    """Permanent record of one claim decision, accepted or not.

    Append-only. The only field filled in after the decision is
    ``visit_id``, and it is written together with the visit itself.
    """
    audit_id: str = Field(default_factory=lambda: f"aud_{uuid4().hex[:12]}")
    user_id: str
    tag_id: str
    flow: str = Field(default="visit")
    timestamp_ms: int = Field(..., ge=0)
    accepted: bool
    reason: Optional[str] = None
    confidence: int = Field(..., ge=0, le=100)
    flags: List[str] = Field(default_factory=list)
    fingerprint_id: Optional[str] = None
    device_attributes: Optional[DeviceAttributes] = None
    challenge_id: str
    last_sample: Optional[LocationSample] = None
    target_latitude: Optional[float] = None
    target_longitude: Optional[float] = None
    distance_m: Optional[float] = None
    visit_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class VisitRecord(BaseModel):
    """A granted visit, created only inside the reward commit."""
    visit_id: str = Field(default_factory=lambda: f"vis_{uuid4().hex[:12]}")
    user_id: str
    tag_id: str
    challenge_id: str
    audit_id: str
    visited_at_ms: int = Field(..., ge=0)
    latitude: float
    longitude: float
    points: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


class RewardTotals(BaseModel):
    """A user's reward ledger balance."""
    user_id: str
    points: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)


class BanRecord(BaseModel):
    """Temporary ban of a user or an IP address.

    ``identifier`` is ``user:<user_id>`` or ``ip:<address>``.
    """
    identifier: str = Field(..., min_length=1)
    reason: str = Field(default="Security violation")
    banned_at_ms: int = Field(..., ge=0)
    expires_at_ms: int = Field(..., ge=0)

    model_config = {"frozen": True}

    def is_active(self, now_ms: int) -> bool:
        return now_ms < self.expires_at_ms


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class CheatStats(BaseModel):
    """Anti-cheat read-out over a user's most recent claim decisions."""
    user_id: str
    total_actions: int = Field(default=0, ge=0)
    suspicious_actions: int = Field(default=0, ge=0)
    avg_suspicious_score: float = Field(default=0.0, ge=0, le=100)
    flag_counts: Dict[str, int] = Field(default_factory=dict)
    risk_level: RiskLevel = Field(default=RiskLevel.LOW)
