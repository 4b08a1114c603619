from fastapi import HTTPException, status

from models.geo import GeofenceVerdict


# Terminal, typed failures of the visit lifecycle. They subclass HTTPException
# so services can raise them straight through the route layer.


class VisitLifecycleError(HTTPException):
    error_code = "VISIT_ERROR"

    def __init__(self, status_code: int, message: str, **extra):
        self.message = message
        detail = {"error": self.error_code, "message": message}
        detail.update(extra)
        super().__init__(status_code=status_code, detail=detail)


class UnknownPropertyCode(VisitLifecycleError):
    error_code = "UNKNOWN_PROPERTY_CODE"

    def __init__(self, property_code: str):
        self.property_code = property_code
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            "Property not found for this code. Try a different code.",
        )


class VisitNotFound(VisitLifecycleError):
    error_code = "VISIT_NOT_FOUND"

    def __init__(self, visit_id: str):
        self.visit_id = visit_id
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            f"Visit {visit_id} not found or does not belong to you.",
        )


class AlreadyCheckedIn(VisitLifecycleError):
    error_code = "ALREADY_CHECKED_IN"

    def __init__(self, existing_visit_id: str):
        self.existing_visit_id = existing_visit_id
        super().__init__(
            status.HTTP_409_CONFLICT,
            "You already have an active visit. Please complete it before starting a new one.",
            active_visit_id=existing_visit_id,
        )


class VisitAlreadyClosed(VisitLifecycleError):
    error_code = "VISIT_ALREADY_CLOSED"

    def __init__(self, visit_id: str):
        self.visit_id = visit_id
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"Visit {visit_id} is already checked out.",
            visit_id=visit_id,
        )


class GeofenceBlocked(VisitLifecycleError):
    error_code = "GEOFENCE_BLOCKED"

    def __init__(self, verdict: GeofenceVerdict):
        self.verdict = verdict
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            "Manual override is not allowed for this property. Please move closer and try again.",
            verdict=verdict.model_dump(mode="json"),
            requires_override=False,
        )
