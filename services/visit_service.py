import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from models.geo import GeofenceStatus, GeofenceVerdict, GeoPoint, PropertyGeofence
from models.override_audit import OverrideStage
from models.visit import CheckMethod, Visit, VisitStatus
from services.override_audit_log import OverrideAuditLog
from services.property_lookup import PropertyDirectory
from services.visit_errors import (
    AlreadyCheckedIn,
    GeofenceBlocked,
    UnknownPropertyCode,
    VisitAlreadyClosed,
    VisitNotFound,
)
from services.visit_store import VisitStore
from utils.datetime_helpers import ensure_utc
from utils.geofence import resolve_verdict

logger = logging.getLogger(__name__)

AUDIT_WRITE_FAILED = "AUDIT_WRITE_FAILED"


@dataclass
class VisitRejection:
    """Geofence verdict the caller must resolve (new location or override reason)."""

    rejection_kind: GeofenceStatus
    verdict: GeofenceVerdict

    def to_response(self) -> dict:
        return {
            "status": "rejected",
            "rejection_kind": self.rejection_kind.value,
            "verdict": self.verdict.model_dump(mode="json"),
            "requires_override": True,
        }


@dataclass
class VisitOutcome:
    visit: Visit
    verdict: GeofenceVerdict
    override_used: bool = False
    warnings: List[str] = field(default_factory=list)


def normalize_reason(reason: Optional[str]) -> Optional[str]:
    # Whitespace-only reasons count as absent
    if reason is None:
        return None
    reason = reason.strip()
    return reason or None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VisitLifecycleService:
    """
    Check-in / check-out orchestration for field visits.

    Per worker the only states are NO_ACTIVE_VISIT and ACTIVE_VISIT. This
    service is the sole writer of visits; each request runs to one outcome:
    a committed VisitOutcome, a VisitRejection, or a raised
    VisitLifecycleError.
    """

    def __init__(self, session: Session, clock: Optional[Callable[[], datetime]] = None):
        self.session = session
        self.store = VisitStore(session)
        self.audit_log = OverrideAuditLog(session)
        self.properties = PropertyDirectory(session)
        self.clock = clock or _utc_now

    # --- Queries ---

    def get_active_visit(self, worker_id: str) -> Optional[Visit]:
        return self.store.find_open_visit(worker_id)

    def get_visit(self, visit_id: str, worker_id: Optional[str] = None) -> Visit:
        visit = self.store.get_visit(visit_id)
        if visit is None or (worker_id is not None and visit.worker_id != worker_id):
            raise VisitNotFound(visit_id)
        return visit

    # --- Transitions ---

    def check_in(
        self,
        worker_id: str,
        property_code: str,
        location: Optional[GeoPoint],
        override_reason: Optional[str] = None,
        method: CheckMethod = CheckMethod.QR,
    ) -> Union[VisitOutcome, VisitRejection]:
        managed_property = self.properties.resolve_by_code(property_code)
        if not managed_property:
            raise UnknownPropertyCode(property_code)

        existing = self.store.find_open_visit(worker_id)
        if existing:
            raise AlreadyCheckedIn(existing.id)

        verdict = resolve_verdict(location, managed_property.to_geofence())
        reason = normalize_reason(override_reason)

        rejection = self._apply_override_policy(verdict, reason)
        if rejection:
            logger.info(
                f"Check-in rejected for worker {worker_id} at {managed_property.id}: "
                f"{verdict.status.value} ({verdict.message})"
            )
            return rejection

        override_used = verdict.status != GeofenceStatus.OK
        visit = Visit(
            worker_id=worker_id,
            property_id=managed_property.id,
            check_in_at=self.clock(),
            check_in_lat=location.latitude if location else None,
            check_in_lng=location.longitude if location else None,
            check_in_method=method,
            check_in_verdict=verdict.model_dump(mode="json"),
            override_reason=reason if override_used else None,
        )

        visit, warnings = self._commit(
            lambda: self.store.try_open_visit(visit),
            visit_id=visit.id,
            worker_id=worker_id,
            stage=OverrideStage.CHECK_IN,
            verdict=verdict,
            reason=reason if override_used else None,
        )

        logger.info(
            f"Worker {worker_id} checked in at {managed_property.id} "
            f"(visit {visit.id}, {verdict.status.value})"
        )
        return VisitOutcome(visit=visit, verdict=verdict, override_used=override_used, warnings=warnings)

    def check_out(
        self,
        visit_id: str,
        location: Optional[GeoPoint],
        override_reason: Optional[str] = None,
        visit_summary: Optional[str] = None,
        photo_urls: Optional[List[str]] = None,
        method: CheckMethod = CheckMethod.QR,
        worker_id: Optional[str] = None,
    ) -> Union[VisitOutcome, VisitRejection]:
        visit = self.get_visit(visit_id, worker_id)
        if visit.status == VisitStatus.CLOSED:
            raise VisitAlreadyClosed(visit_id)

        # Location may have drifted since check-in; re-check against the same fence
        fence = self.properties.get_geofence(visit.property_id)
        if fence is None:
            logger.warning(f"Property {visit.property_id} for visit {visit_id} is gone; treating as unfenced")
            fence = PropertyGeofence(property_id=visit.property_id)

        verdict = resolve_verdict(location, fence)
        reason = normalize_reason(override_reason)

        rejection = self._apply_override_policy(verdict, reason)
        if rejection:
            logger.info(
                f"Check-out rejected for visit {visit_id}: {verdict.status.value} ({verdict.message})"
            )
            return rejection

        override_used = verdict.status != GeofenceStatus.OK

        # Never record a departure before the arrival
        check_in_at = ensure_utc(visit.check_in_at)
        check_out_at = max(self.clock(), check_in_at)

        updates = {
            "check_out_at": check_out_at,
            "check_out_lat": location.latitude if location else None,
            "check_out_lng": location.longitude if location else None,
            "check_out_method": method,
            "check_out_verdict": verdict.model_dump(mode="json"),
            "check_out_override_reason": reason if override_used else None,
            "visit_summary": visit_summary,
            "photo_urls": photo_urls or [],
        }

        closed, warnings = self._commit(
            lambda: self.store.close_visit(visit_id, updates),
            visit_id=visit_id,
            worker_id=visit.worker_id,
            stage=OverrideStage.CHECK_OUT,
            verdict=verdict,
            reason=reason if override_used else None,
        )

        logger.info(
            f"Worker {closed.worker_id} checked out of {closed.property_id} "
            f"(visit {visit_id}, {verdict.status.value})"
        )
        return VisitOutcome(visit=closed, verdict=verdict, override_used=override_used, warnings=warnings)

    # --- Internals ---

    def _apply_override_policy(
        self, verdict: GeofenceVerdict, reason: Optional[str]
    ) -> Optional[VisitRejection]:
        if verdict.status == GeofenceStatus.OK:
            return None

        # Properties that disallow overrides have no escape hatch past the grace band
        if verdict.status == GeofenceStatus.HARD_BLOCK and not verdict.override_allowed:
            raise GeofenceBlocked(verdict)

        if reason is None:
            return VisitRejection(rejection_kind=verdict.status, verdict=verdict)

        return None

    def _commit(
        self,
        mutate: Callable[[], Visit],
        visit_id: str,
        worker_id: str,
        stage: OverrideStage,
        verdict: GeofenceVerdict,
        reason: Optional[str],
    ) -> Tuple[Visit, List[str]]:
        """
        Apply the visit mutation and, for overrides, the audit append in one
        transaction. If only the audit append fails, the mutation is replayed
        and committed alone and AUDIT_WRITE_FAILED is reported.
        """
        try:
            visit = mutate()
            if reason is None:
                self.session.commit()
                return visit, []

            try:
                self.audit_log.record(visit_id, worker_id, stage, verdict, reason)
                self.session.commit()
                return visit, []
            except SQLAlchemyError as e:
                logger.warning(
                    f"{AUDIT_WRITE_FAILED}: override audit for visit {visit_id} "
                    f"({stage.value}) not stored, committing visit without it: {e}"
                )
                self.session.rollback()

            visit = mutate()
            self.session.commit()
            return visit, [AUDIT_WRITE_FAILED]
        except SQLAlchemyError:
            self.session.rollback()
            raise
