import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlmodel import Session, select

from models.geo import GeofenceVerdict
from models.override_audit import OverrideAuditEntry, OverrideStage
from utils.hash_chain import compute_entry_hash, validate_chain

logger = logging.getLogger(__name__)


class OverrideAuditLog:
    """Append-only trail of geofence overrides. No update or delete paths exist."""

    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        visit_id: str,
        worker_id: str,
        stage: OverrideStage,
        verdict: GeofenceVerdict,
        reason: str,
    ) -> OverrideAuditEntry:
        previous = self.session.exec(
            select(OverrideAuditEntry)
            .where(OverrideAuditEntry.visit_id == visit_id)
            .order_by(OverrideAuditEntry.id.desc())
        ).first()
        prev_hash = previous.entry_hash if previous else None

        recorded_at = datetime.now(timezone.utc)
        verdict_data = verdict.model_dump(mode="json")

        entry = OverrideAuditEntry(
            visit_id=visit_id,
            worker_id=worker_id,
            stage=stage,
            verdict=verdict_data,
            reason=reason,
            recorded_at=recorded_at,
            prev_hash=prev_hash,
            entry_hash=compute_entry_hash(
                prev_hash, visit_id, stage.value, verdict_data, reason, recorded_at
            ),
        )
        self.session.add(entry)
        self.session.flush()

        logger.warning(
            f"Geofence override recorded: visit={visit_id} worker={worker_id} "
            f"stage={stage.value} status={verdict.status.value} "
            f"distance={verdict.distance_meters:.1f}m"
        )
        return entry

    def list_for_visit(self, visit_id: str) -> List[OverrideAuditEntry]:
        return list(
            self.session.exec(
                select(OverrideAuditEntry)
                .where(OverrideAuditEntry.visit_id == visit_id)
                .order_by(OverrideAuditEntry.id)
            ).all()
        )

    def verify_chain(self, visit_id: str) -> Dict[str, Any]:
        return validate_chain(self.list_for_visit(visit_id))
