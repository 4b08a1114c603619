from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session

from core.deps import require_manager_role
from db.session import get_session
from models.override_audit import OverrideAuditEntryRead
from models.visit import VisitRead, VisitStatus
from services.override_audit_log import OverrideAuditLog
from services.visit_errors import VisitNotFound
from services.visit_store import VisitStore

router = APIRouter()

# --- Response Models ---


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class VisitPage(BaseModel):
    visits: List[VisitRead]
    pagination: Pagination


class VisitAuditTrail(BaseModel):
    visit_id: str
    entries: List[OverrideAuditEntryRead]
    is_valid: bool
    errors: List[str]


# --- API Endpoints ---


@router.get("", response_model=VisitPage)
def list_visits(
    session: Session = Depends(get_session),
    manager: dict = Depends(require_manager_role),
    property_id: Optional[str] = Query(None, description="Filter by property"),
    worker_id: Optional[str] = Query(None, description="Filter by worker"),
    status: Optional[VisitStatus] = Query(None, description="OPEN or CLOSED"),
    limit: int = Query(20, ge=1, le=100, description="Maximum number of visits to return"),
    offset: int = Query(0, ge=0, description="Number of visits to skip"),
):
    visits, total = VisitStore(session).list_visits(
        property_id=property_id,
        worker_id=worker_id,
        status=status,
        limit=limit,
        offset=offset,
    )
    return VisitPage(
        visits=[visit.to_read() for visit in visits],
        pagination=Pagination(
            total=total, limit=limit, offset=offset, has_more=offset + limit < total
        ),
    )


@router.get("/{visit_id}/audit", response_model=VisitAuditTrail)
def get_visit_audit_trail(
    visit_id: str,
    session: Session = Depends(get_session),
    manager: dict = Depends(require_manager_role),
):
    if VisitStore(session).get_visit(visit_id) is None:
        raise VisitNotFound(visit_id)

    audit_log = OverrideAuditLog(session)
    entries = audit_log.list_for_visit(visit_id)
    chain = audit_log.verify_chain(visit_id)

    return VisitAuditTrail(
        visit_id=visit_id,
        entries=[OverrideAuditEntryRead.model_validate(entry, from_attributes=True) for entry in entries],
        is_valid=chain["is_valid"],
        errors=chain["errors"],
    )
