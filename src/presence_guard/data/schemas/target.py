"""Target schema - a physical tag bound to a real-world location."""

from typing import Optional
from pydantic import BaseModel, Field


class Target(BaseModel):
    """Tag to location binding, owned by the target catalog."""
    tag_id: str = Field(..., min_length=1, description="Scannable tag identifier")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    is_active: bool = Field(default=True)
    reward_points: int = Field(default=0, ge=0)
    reward_xp: int = Field(default=0, ge=0)
    name: Optional[str] = Field(default=None, description="Display name of the location")

    model_config = {
        "json_schema_extra": {
            "example": {
                "tag_id": "tag_alameda_01",
                "latitude": 36.4273,
                "longitude": -5.1483,
                "is_active": True,
                "reward_points": 10,
                "reward_xp": 25,
                "name": "Alameda fountain",
            }
        }
    }
