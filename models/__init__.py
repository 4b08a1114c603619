from .geo import GeofenceStatus, GeofenceVerdict, GeoPoint, PropertyGeofence
from .override_audit import OverrideAuditEntry, OverrideAuditEntryRead, OverrideStage
from .property import ManagedProperty
from .visit import CheckInRequest, CheckMethod, CheckOutRequest, Visit, VisitRead, VisitStatus
