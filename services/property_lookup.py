from typing import Optional

from sqlmodel import Session, select

from models.geo import PropertyGeofence
from models.property import ManagedProperty


class PropertyDirectory:
    """Read-only access to managed properties and their fences."""

    def __init__(self, session: Session):
        self.session = session

    def resolve_by_code(self, code: str) -> Optional[ManagedProperty]:
        code = (code or "").strip()
        if not code:
            return None
        return self.session.exec(
            select(ManagedProperty).where(ManagedProperty.master_qr_code == code)
        ).first()

    def get_geofence(self, property_id: str) -> Optional[PropertyGeofence]:
        managed_property = self.session.get(ManagedProperty, property_id)
        if not managed_property:
            return None
        return managed_property.to_geofence()
