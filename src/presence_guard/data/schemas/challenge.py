"""Challenge schema - one-time nonce protecting a claim from replay."""

from typing import Optional
from pydantic import BaseModel, Field


class Challenge(BaseModel):
    """A single-use challenge.

    Immutable after creation except for the ``used`` flag, which only the
    store flips, atomically.
    """
    challenge_id: str = Field(..., description="Random challenge identifier")
    user_id: str = Field(..., description="User the challenge was issued to")
    nonce: str = Field(..., min_length=64, description="Hex encoded random nonce")
    issued_at_ms: int = Field(..., ge=0)
    expires_at_ms: int = Field(..., ge=0)
    used: bool = Field(default=False)

    model_config = {
        "json_schema_extra": {
            "example": {
                "challenge_id": "4f6b1c9e-8d2a-4b7e-9f31-0a5c2d7e6b18",
                "user_id": "user_abc123",
                "nonce": "9c1e" * 16,
                "issued_at_ms": 1769611800000,
                "expires_at_ms": 1769611860000,
                "used": False,
            }
        }
    }

    def is_expired(self, now_ms: int) -> bool:
        """A challenge expires strictly after its expiry instant."""
        return now_ms > self.expires_at_ms


class ConsumeOutcome(BaseModel):
    """Result of consuming a challenge."""
    success: bool
    reason: Optional[str] = Field(
        default=None, description="INVALID, REPLAY, NONCE_MISMATCH or EXPIRED"
    )
    challenge: Optional[Challenge] = None
