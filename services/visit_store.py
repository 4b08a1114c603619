import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from models.visit import Visit, VisitStatus
from services.visit_errors import AlreadyCheckedIn, VisitAlreadyClosed, VisitNotFound

logger = logging.getLogger(__name__)


class VisitStore:
    """
    Authoritative state of visits.

    Exclusivity lives in the database: a partial unique index on worker_id
    for OPEN rows makes the insert itself the "already checked in?" check,
    and closing is a conditional UPDATE that only matches OPEN rows. The
    store flushes but never commits; the caller owns the transaction on
    success. On a conflict (lost open race, close of a missing or already
    closed visit) the store rolls the session back before raising, so the
    caller's pending work is discarded and the write lock is released.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_visit(self, visit_id: str) -> Optional[Visit]:
        return self.session.get(Visit, visit_id)

    def find_open_visit(self, worker_id: str) -> Optional[Visit]:
        return self.session.exec(
            select(Visit)
            .where(Visit.worker_id == worker_id)
            .where(Visit.status == VisitStatus.OPEN)
        ).first()

    def try_open_visit(self, visit: Visit) -> Visit:
        # Fast path: the common case gets a clear error without touching the index
        existing = self.find_open_visit(visit.worker_id)
        if existing:
            raise AlreadyCheckedIn(existing.id)

        self.session.add(visit)
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            winner = self.find_open_visit(visit.worker_id)
            if winner is None:
                raise
            logger.warning(
                f"Worker {visit.worker_id} lost open-visit race; active visit is {winner.id}"
            )
            raise AlreadyCheckedIn(winner.id)

        return visit

    def close_visit(self, visit_id: str, updates: dict) -> Visit:
        result = self.session.exec(
            update(Visit)
            .where(Visit.id == visit_id)
            .where(Visit.status == VisitStatus.OPEN)
            .values(status=VisitStatus.CLOSED, **updates)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            exists = self.get_visit(visit_id) is not None
            self.session.rollback()
            if not exists:
                raise VisitNotFound(visit_id)
            raise VisitAlreadyClosed(visit_id)

        # Reload so the identity map reflects the UPDATE
        return self.session.get(Visit, visit_id, populate_existing=True)

    def list_visits(
        self,
        property_id: Optional[str] = None,
        worker_id: Optional[str] = None,
        status: Optional[VisitStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Visit], int]:
        conditions = []
        if property_id:
            conditions.append(Visit.property_id == property_id)
        if worker_id:
            conditions.append(Visit.worker_id == worker_id)
        if status:
            conditions.append(Visit.status == status)

        visits = self.session.exec(
            select(Visit)
            .where(*conditions)
            .order_by(Visit.check_in_at.desc())
            .offset(offset)
            .limit(limit)
        ).all()

        total = self.session.exec(
            select(func.count()).select_from(Visit).where(*conditions)
        ).one()

        return list(visits), total
