from typing import Optional

from sqlmodel import Field, SQLModel

from models.geo import GeoPoint, PropertyGeofence


# Managed Property w/ Optional Circular Geofence, Located By Its Printed QR Code
class ManagedProperty(SQLModel, table=True):
    __tablename__ = "managed_properties"

    id: str = Field(primary_key=True, description="Unique property identifier")
    name: Optional[str] = Field(default=None, description="Human-friendly property name")
    master_qr_code: str = Field(
        ..., unique=True, index=True, description="Code printed on the property's QR sticker"
    )
    geofence_center_lat: Optional[float] = Field(default=None, description="Latitude of fence center")
    geofence_center_lng: Optional[float] = Field(default=None, description="Longitude of fence center")
    geofence_radius_meters: float = Field(default=100.0, description="Allowed check-in radius in meters")
    geofence_manual_override_allowed: bool = Field(default=True)

    def to_geofence(self) -> PropertyGeofence:
        center = None
        if self.geofence_center_lat is not None and self.geofence_center_lng is not None:
            center = GeoPoint(
                latitude=self.geofence_center_lat, longitude=self.geofence_center_lng
            )
        return PropertyGeofence(
            property_id=self.id,
            center=center,
            radius_meters=self.geofence_radius_meters,
            manual_override_allowed=self.geofence_manual_override_allowed,
        )
