from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_serializer
from sqlalchemy import JSON, Column
from sqlmodel import Field, Index, SQLModel

from models.geo import GeofenceVerdict
from utils.datetime_helpers import format_utc_datetime


class OverrideStage(str, Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


# Append-only record of a worker proceeding despite a geofence warning or block
class OverrideAuditEntry(SQLModel, table=True):
    __tablename__ = "override_audit_entries"

    __table_args__ = (
        Index("ix_override_audit_entries_visit_id", "visit_id"),
        Index("ix_override_audit_entries_recorded_at", "recorded_at"),
        # One override per stage per visit
        Index("uq_override_audit_entries_visit_stage", "visit_id", "stage", unique=True),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    visit_id: str = Field(foreign_key="property_visits.id")
    worker_id: str
    stage: OverrideStage
    verdict: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    reason: str
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Tamper-evidence: SHA-256 chained per visit
    prev_hash: Optional[str] = Field(default=None)
    entry_hash: str


class OverrideAuditEntryRead(BaseModel):
    id: int
    visit_id: str
    worker_id: str
    stage: OverrideStage
    verdict: GeofenceVerdict
    reason: str
    recorded_at: datetime
    prev_hash: Optional[str] = None
    entry_hash: str

    @field_serializer("recorded_at")
    def serialize_recorded_at(self, dt: datetime) -> str:
        """Ensure timestamp is formatted as UTC with Z suffix"""
        return format_utc_datetime(dt)
