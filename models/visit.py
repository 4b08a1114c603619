from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_serializer
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column, text
from sqlmodel import Field, Index, SQLModel

from models.geo import GeofenceVerdict, GeoPoint
from utils.datetime_helpers import ensure_utc, format_utc_datetime


class VisitStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class CheckMethod(str, Enum):
    QR = "QR"
    MANUAL = "MANUAL"


# Defines the Structure of Data for a Check In Call
class CheckInRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    property_code: str = PydanticField(..., min_length=1)
    location: Optional[GeoPoint] = None
    override_reason: Optional[str] = PydanticField(default=None, max_length=500)
    method: CheckMethod = CheckMethod.QR


# Defines the Structure of Data for a Check Out Call
class CheckOutRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    location: Optional[GeoPoint] = None
    override_reason: Optional[str] = PydanticField(default=None, max_length=500)
    visit_summary: Optional[str] = None
    photo_urls: Optional[List[str]] = None
    method: CheckMethod = CheckMethod.QR


# One Check-In -> Check-Out Cycle For a Worker at a Property
class Visit(SQLModel, table=True):
    __tablename__ = "property_visits"

    __table_args__ = (
        # At most one OPEN visit per worker; the insert itself is the exclusivity check
        Index(
            "uq_property_visits_open_worker",
            "worker_id",
            unique=True,
            postgresql_where=text("status = 'OPEN'"),
            sqlite_where=text("status = 'OPEN'"),
        ),
        Index("ix_property_visits_worker_id_check_in_at", "worker_id", "check_in_at"),
        Index("ix_property_visits_property_id", "property_id"),
        Index("ix_property_visits_status", "status"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    worker_id: str
    property_id: str = Field(foreign_key="managed_properties.id")
    status: VisitStatus = Field(default=VisitStatus.OPEN)

    check_in_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    check_in_lat: Optional[float] = None
    check_in_lng: Optional[float] = None
    check_in_method: CheckMethod = Field(default=CheckMethod.QR)
    check_in_verdict: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    override_reason: Optional[str] = Field(default=None)

    check_out_at: Optional[datetime] = Field(default=None)
    check_out_lat: Optional[float] = None
    check_out_lng: Optional[float] = None
    check_out_method: Optional[CheckMethod] = Field(default=None)
    check_out_verdict: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    check_out_override_reason: Optional[str] = Field(default=None)

    # Opaque metadata attached at check-out
    visit_summary: Optional[str] = Field(default=None)
    photo_urls: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))

    def to_read(self) -> "VisitRead":
        return VisitRead(
            id=self.id,
            worker_id=self.worker_id,
            property_id=self.property_id,
            status=self.status,
            check_in_at=ensure_utc(self.check_in_at),
            check_in_location=_point(self.check_in_lat, self.check_in_lng),
            check_in_method=self.check_in_method,
            check_in_verdict=GeofenceVerdict.model_validate(self.check_in_verdict),
            override_reason=self.override_reason,
            check_out_at=ensure_utc(self.check_out_at),
            check_out_location=_point(self.check_out_lat, self.check_out_lng),
            check_out_method=self.check_out_method,
            check_out_verdict=(
                GeofenceVerdict.model_validate(self.check_out_verdict)
                if self.check_out_verdict is not None
                else None
            ),
            check_out_override_reason=self.check_out_override_reason,
            visit_summary=self.visit_summary,
            photo_urls=self.photo_urls or [],
        )


def _point(lat: Optional[float], lng: Optional[float]) -> Optional[GeoPoint]:
    if lat is None or lng is None:
        return None
    return GeoPoint(latitude=lat, longitude=lng)


# Read model: How a visit looks when sent back in responses
class VisitRead(BaseModel):
    id: str
    worker_id: str
    property_id: str
    status: VisitStatus
    check_in_at: datetime
    check_in_location: Optional[GeoPoint] = None
    check_in_method: CheckMethod
    check_in_verdict: GeofenceVerdict
    override_reason: Optional[str] = None
    check_out_at: Optional[datetime] = None
    check_out_location: Optional[GeoPoint] = None
    check_out_method: Optional[CheckMethod] = None
    check_out_verdict: Optional[GeofenceVerdict] = None
    check_out_override_reason: Optional[str] = None
    visit_summary: Optional[str] = None
    photo_urls: List[str] = []

    @field_serializer("check_in_at", "check_out_at")
    def serialize_timestamps(self, dt: Optional[datetime]) -> Optional[str]:
        """Ensure timestamps are formatted as UTC with Z suffix"""
        return format_utc_datetime(dt)
