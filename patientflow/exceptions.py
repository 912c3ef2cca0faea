from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Optional


class APIException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)


class PatientFlowError(APIException):
    """Base class for every typed failure the services report.

    Subclasses pin an HTTP status and a stable ``code`` so callers can branch
    on the failure without parsing the message.
    """

    status_code: int = 400
    code: str = "ERROR"
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(status_code=self.status_code, detail=self.message)

    def __str__(self) -> str:
        return self.message


class ValidationError(PatientFlowError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class InvalidStateError(PatientFlowError):
    status_code = 409
    code = "INVALID_STATE"
    default_message = "Operation not allowed in the current appointment state"


class NotAssignedError(PatientFlowError):
    status_code = 403
    code = "NOT_ASSIGNED"
    default_message = "Appointment is not assigned to this doctor"


class NotADoctorError(PatientFlowError):
    status_code = 403
    code = "NOT_A_DOCTOR"
    default_message = "Only doctors can perform this action"


class NoAvailableDoctorError(PatientFlowError):
    status_code = 409
    code = "NO_AVAILABLE_DOCTOR"
    default_message = "No available doctor to take this patient"


class AlreadyInConsultationError(PatientFlowError):
    status_code = 409
    code = "ALREADY_IN_CONSULTATION"
    default_message = "Doctor is already in a consultation"


class AlreadyPrescribedError(PatientFlowError):
    status_code = 409
    code = "ALREADY_PRESCRIBED"
    default_message = "A prescription already exists for this appointment"


class ConflictError(PatientFlowError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Record was modified concurrently, retry the operation"


class NotFoundError(PatientFlowError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class AuthenticationError(PatientFlowError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Invalid or expired token"


class PermissionDeniedError(PatientFlowError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action"


class RateLimitedError(PatientFlowError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests, please try again later"


class ServiceUnavailableError(PatientFlowError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"
    default_message = "Service temporarily unavailable"


def create_error_response(error_message: str, code: str = "ERROR", details=None) -> dict:
    """Create a standardized error response"""
    body = {
        "success": False,
        "data": None,
        "error": error_message,
        "code": code,
    }
    if details is not None:
        body["details"] = details
    return body


def create_success_response(data: dict) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "data": data,
        "error": None
    }


async def patientflow_exception_handler(request: Request, exc: PatientFlowError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.code),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", AuthenticationError.code)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail), f"HTTP_{exc.status_code}")
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", []) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=create_error_response("Validation error", ValidationError.code, details=errors),
    )
