from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# A Single Reported Position (degrees, WGS84)
class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# Circular Fence Around a Managed Property; center=None Means No Fence Configured
class PropertyGeofence(BaseModel):
    model_config = ConfigDict(frozen=True)

    property_id: str
    center: Optional[GeoPoint] = None
    radius_meters: float = Field(default=100.0, ge=0)
    manual_override_allowed: bool = True


class GeofenceStatus(str, Enum):
    OK = "OK"
    SOFT_WARNING = "SOFT_WARNING"
    HARD_BLOCK = "HARD_BLOCK"


# Result of Comparing a Worker Position to a Fence
class GeofenceVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: GeofenceStatus
    distance_meters: float
    threshold_meters: float
    override_allowed: bool
    message: str
