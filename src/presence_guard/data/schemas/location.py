"""Location sample schema - canonical definition."""

from typing import Optional
from pydantic import BaseModel, Field


class LocationSample(BaseModel):
    """One client-reported GPS reading.

    Shape is validated here (finite numbers, non-negative accuracy and
    timestamp). Coordinate ranges are left to the sample
    validator so out-of-range readings produce an audited rejection
    instead of a transport error.
    """
    latitude: float = Field(..., allow_inf_nan=False, description="Latitude in degrees")
    longitude: float = Field(..., allow_inf_nan=False, description="Longitude in degrees")
    accuracy_m: float = Field(
        ..., ge=0, allow_inf_nan=False, description="Horizontal accuracy radius in meters"
    )
    altitude_m: Optional[float] = Field(
        default=None, allow_inf_nan=False, description="Altitude in meters"
    )
    speed_mps: Optional[float] = Field(
        default=None, allow_inf_nan=False, description="Reported ground speed in m/s"
    )
    heading_deg: Optional[float] = Field(
        default=None, ge=0, le=360, description="Heading in degrees"
    )
    captured_at_ms: int = Field(..., ge=0, description="Capture time, epoch milliseconds")

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "latitude": 36.4273,
                "longitude": -5.1483,
                "accuracy_m": 10.0,
                "altitude_m": 12.0,
                "speed_mps": 0.4,
                "heading_deg": 90.0,
                "captured_at_ms": 1769611805000,
            }
        }
    }
