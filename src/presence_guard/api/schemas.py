"""API Schemas - Request/Response models for the API Gateway.
"""

from typing import Optional
from pydantic import BaseModel, Field

from presence_guard.data.schemas.claim import Claim, ClaimDecision
from presence_guard.data.schemas.device import DeviceAttributes
from presence_guard.data.schemas.records import BanRecord
from presence_guard.data.schemas.session import SessionAction


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ChallengeRequest(BaseModel):
    """Request body for POST /challenges."""
    user_id: str = Field(..., min_length=1, description="User the challenge is issued to")


class ClaimRequest(Claim):
    """Request body for POST /claims.

    Same shape as a domain Claim; ``flow`` selects the entry point policy.
    """

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": "user_abc123",
                "tag_id": "tag_castle_gate",
                "challenge_id": "5b0f7e4c-8a9d-4d35-9a55-0c2f1b6d8e21",
                "nonce": "9f2c" * 16,
                "flow": "visit",
                "samples": [
                    {"latitude": 36.4273, "longitude": -5.1483, "accuracy_m": 10,
                     "captured_at_ms": 1767225600000},
                    {"latitude": 36.4273, "longitude": -5.1483, "accuracy_m": 10,
                     "captured_at_ms": 1767225602000},
                    {"latitude": 36.4273, "longitude": -5.1483, "accuracy_m": 10,
                     "captured_at_ms": 1767225604000},
                ],
                "device_attributes": {
                    "user_agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0) Safari/604.1",
                    "screen_resolution": "390x844",
                    "timezone": "Europe/Madrid",
                    "language": "es-ES",
                    "platform": "iPhone",
                },
                "session_id": "sess_abc123",
                "ip_address": "203.0.113.7",
            }
        }
    }


class SessionValidateRequest(BaseModel):
    """Request body for POST /sessions/validate."""
    user_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    device_attributes: DeviceAttributes = Field(default_factory=DeviceAttributes)
    ip_address: Optional[str] = Field(default=None, description="Client IP address")


class SessionRevokeRequest(BaseModel):
    """Request body for POST /sessions/revoke.

    Either one session, or all of the user's sessions (optionally keeping
    ``except_session_id``).
    """
    user_id: str = Field(..., min_length=1)
    session_id: Optional[str] = Field(default=None)
    all_sessions: bool = Field(default=False)
    except_session_id: Optional[str] = Field(default=None)
    reason: str = Field(default="manual")


class SessionActivityRequest(BaseModel):
    """Request body for POST /sessions/activity.

    A LOGIN without ``session_id`` opens a new session.
    """
    user_id: str = Field(..., min_length=1)
    action: SessionAction = Field(..., description="LOGIN, LOGOUT or REFRESH")
    session_id: Optional[str] = Field(default=None)
    device_attributes: DeviceAttributes = Field(default_factory=DeviceAttributes)
    ip_address: Optional[str] = Field(default=None)


class BanRequest(BaseModel):
    """Request body for POST /bans and POST /bans/lift.

    Names exactly one of a user or an IP address.
    """
    user_id: Optional[str] = Field(default=None, min_length=1)
    ip_address: Optional[str] = Field(default=None, min_length=1)
    duration_seconds: Optional[int] = Field(
        default=None, gt=0, description="Defaults to the policy's ban duration"
    )
    reason: Optional[str] = Field(default=None, description="Defaults to 'Security violation'")


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class ChallengeResponse(BaseModel):
    """Response for POST /challenges."""
    challenge_id: str
    nonce: str
    expires_at_ms: int

    model_config = {
        "json_schema_extra": {
            "example": {
                "challenge_id": "5b0f7e4c-8a9d-4d35-9a55-0c2f1b6d8e21",
                "nonce": "9f2c" * 16,
                "expires_at_ms": 1767225660000,
            }
        }
    }


class ClaimResponse(ClaimDecision):
    """Response for POST /claims."""


class SessionRevokeResponse(BaseModel):
    revoked_count: int = Field(..., ge=0)


class SessionActivityResponse(BaseModel):
    """Response for POST /sessions/activity."""
    session_id: str
    log_id: Optional[str] = None
    expires_at_ms: Optional[int] = Field(
        default=None, description="Set when the request opened a new session"
    )


class BanResponse(BaseModel):
    """Response for POST /bans and POST /bans/lift."""
    identifier: str
    active: bool
    ban: Optional[BanRecord] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    request_id: Optional[str] = Field(
        default=None, description="Request ID for debugging"
    )
