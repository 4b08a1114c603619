from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session

from core.deps import get_current_user
from db.session import get_session
from models.visit import CheckInRequest, CheckOutRequest
from services.visit_service import VisitLifecycleService, VisitOutcome, VisitRejection

# Defines API Endpoints
router = APIRouter()


def get_visit_service(session: Session = Depends(get_session)) -> VisitLifecycleService:
    return VisitLifecycleService(session)


def _respond(result):
    # Geofence rejections are expected; the client resubmits with a reason or a closer fix
    if isinstance(result, VisitRejection):
        return JSONResponse(status_code=409, content=result.to_response())

    outcome: VisitOutcome = result
    return {
        "status": "success",
        "data": outcome.visit.to_read(),
        "geofence": outcome.verdict,
        "warnings": outcome.warnings,
    }


# Check In Endpoint
@router.post("/check-in")
def check_in(
    data: CheckInRequest,
    service: VisitLifecycleService = Depends(get_visit_service),
    user: dict = Depends(get_current_user),
):
    result = service.check_in(
        worker_id=user["uid"],
        property_code=data.property_code,
        location=data.location,
        override_reason=data.override_reason,
        method=data.method,
    )
    return _respond(result)


# Check Out Endpoint
@router.patch("/{visit_id}/check-out")
def check_out(
    visit_id: str,
    data: CheckOutRequest,
    service: VisitLifecycleService = Depends(get_visit_service),
    user: dict = Depends(get_current_user),
):
    result = service.check_out(
        visit_id=visit_id,
        location=data.location,
        override_reason=data.override_reason,
        visit_summary=data.visit_summary,
        photo_urls=data.photo_urls,
        method=data.method,
        worker_id=user["uid"],
    )
    return _respond(result)


# Get Active Visit (server-authoritative; clients never cache this)
@router.get("/active")
def get_active_visit(
    service: VisitLifecycleService = Depends(get_visit_service),
    user: dict = Depends(get_current_user),
):
    visit = service.get_active_visit(user["uid"])
    if not visit:
        return {"status": "success", "data": None, "message": "No active visit."}
    return {"status": "success", "data": visit.to_read()}


# Get One of My Visits
@router.get("/{visit_id}")
def get_visit(
    visit_id: str,
    service: VisitLifecycleService = Depends(get_visit_service),
    user: dict = Depends(get_current_user),
):
    visit = service.get_visit(visit_id, worker_id=user["uid"])
    return {"status": "success", "data": visit.to_read()}
