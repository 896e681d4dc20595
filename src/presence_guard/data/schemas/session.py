"""Session schemas - session state and its append-only activity log."""

from enum import Enum
from typing import List, Optional
from uuid import uuid4
from pydantic import BaseModel, Field


class SessionAction(str, Enum):
    """Session activity actions."""
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    REFRESH = "REFRESH"
    VALIDATE = "VALIDATE"
    REVOKE = "REVOKE"


class SessionRecord(BaseModel):
    """An authenticated session."""
    session_id: str
    user_id: str
    created_at_ms: int = Field(..., ge=0)
    expires_at_ms: int = Field(..., ge=0)
    revoked: bool = Field(default=False)
    revoked_at_ms: Optional[int] = None
    ip_address: Optional[str] = None
    fingerprint_id: Optional[str] = None

    def is_active(self, now_ms: int) -> bool:
        return not self.revoked and now_ms <= self.expires_at_ms


class SessionActivity(BaseModel):
    """One entry of the session activity log."""
    log_id: str = Field(default_factory=lambda: f"sal_{uuid4().hex[:12]}")
    user_id: str
    session_id: str
    action: SessionAction
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    fingerprint_id: Optional[str] = None
    timestamp_ms: int = Field(..., ge=0)
    suspicious: bool = Field(default=False)
    flags: List[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class SessionAssessment(BaseModel):
    """Trust assessment of a session."""
    session_id: str
    trusted: bool
    suspicious_score: int = Field(..., ge=0, le=100)
    flags: List[str] = Field(default_factory=list)
    should_revoke: bool = Field(default=False)
    revoked: bool = Field(default=False)

    model_config = {
        "json_schema_extra": {
            "example": {
                "session_id": "sess_abc123",
                "trusted": False,
                "suspicious_score": 65,
                "flags": ["FINGERPRINT_CHANGED", "IP_CHANGED"],
                "should_revoke": False,
                "revoked": False,
            }
        }
    }


class AnomalousSession(BaseModel):
    """A session whose recent activity spans too many IPs or devices."""
    session_id: str
    distinct_ips: int
    distinct_fingerprints: int
