"""API - presence validation service and endpoints.

Endpoints:
    POST /challenges
    POST /claims
    POST /sessions/validate
    POST /sessions/revoke
    POST /sessions/activity
    GET  /health, /ready

Rejected claims are ordinary responses carrying a reason; only malformed
requests and infrastructure failures are HTTP errors.
"""

from presence_guard.api.gateway import app
from presence_guard.api.schemas import (
    ChallengeRequest,
    ChallengeResponse,
    ClaimRequest,
    ClaimResponse,
    ErrorResponse,
)
from presence_guard.api.service import PresenceService

__all__ = [
    "app",
    "ChallengeRequest",
    "ChallengeResponse",
    "ClaimRequest",
    "ClaimResponse",
    "ErrorResponse",
    "PresenceService",
]
