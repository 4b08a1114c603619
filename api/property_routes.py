from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from core.deps import get_current_user
from db.session import get_session
from models.geo import GeoPoint
from services.property_lookup import PropertyDirectory
from services.visit_errors import UnknownPropertyCode
from utils.geofence import SOFT_GRACE_METERS

router = APIRouter()

# --- Pydantic Models for Response ---


class PropertyGeofenceResponse(BaseModel):
    property_id: str
    name: Optional[str] = None
    center: Optional[GeoPoint] = None
    radius_meters: float
    soft_threshold_meters: float
    manual_override_allowed: bool


# --- API Endpoints ---


@router.get("/{property_code}/geofence", response_model=PropertyGeofenceResponse)
def get_property_geofence(
    property_code: str,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    """
    Resolve a scanned property code and return its fence so the client can
    warn the worker before submitting a check-in.
    """
    managed_property = PropertyDirectory(session).resolve_by_code(property_code)
    if not managed_property:
        raise UnknownPropertyCode(property_code)

    fence = managed_property.to_geofence()
    return PropertyGeofenceResponse(
        property_id=fence.property_id,
        name=managed_property.name,
        center=fence.center,
        radius_meters=fence.radius_meters,
        soft_threshold_meters=fence.radius_meters + SOFT_GRACE_METERS,
        manual_override_allowed=fence.manual_override_allowed,
    )
