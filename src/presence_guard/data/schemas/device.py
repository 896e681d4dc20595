"""Device schemas - client environment attributes and derived fingerprint."""

from typing import Optional
from pydantic import BaseModel, Field


class DeviceAttributes(BaseModel):
    """Client-reported environment attributes.

    Every field is optional: a client may send nothing at all, which
    yields a zero-confidence fingerprint rather than an error.
    """
    user_agent: Optional[str] = Field(default=None)
    screen_resolution: Optional[str] = Field(default=None, description="e.g. '1920x1080'")
    timezone: Optional[str] = Field(default=None, description="IANA zone name")
    language: Optional[str] = Field(default=None)
    platform: Optional[str] = Field(default=None)
    vendor: Optional[str] = Field(default=None)
    cookies_enabled: Optional[bool] = Field(default=None)
    do_not_track: Optional[str] = Field(default=None)
    ip_address: Optional[str] = Field(default=None)

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) "
                              "AppleWebKit/605.1.15 Version/17.2 Mobile/15E148 Safari/604.1",
                "screen_resolution": "390x844",
                "timezone": "Europe/Madrid",
                "language": "es-ES",
                "platform": "iPhone",
                "vendor": "Apple Computer, Inc.",
                "cookies_enabled": True,
                "do_not_track": "1",
                "ip_address": "203.0.113.7",
            }
        }
    }


class DeviceFingerprint(BaseModel):
    """Derived, non-cryptographic device identity."""
    fingerprint_id: str = Field(..., description="sha256 hex digest of the attributes")
    raw_attributes: DeviceAttributes = Field(default_factory=DeviceAttributes)
    confidence: int = Field(..., ge=0, le=100)
