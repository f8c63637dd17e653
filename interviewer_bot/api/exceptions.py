from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_402_PAYMENT_REQUIRED,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from interviewer_bot.core.exceptions import (
    InterviewError,
    InterviewValidationError,
    InvalidSessionStateError,
    QuotaExceededError,
    SessionBusyError,
    StaleSessionError,
    UpstreamGenerationError,
)
from interviewer_bot.core.logging import log_event
from interviewer_bot.core.storage import (
    InvalidSessionIdError,
    SessionDeleteError,
    SessionLoadError,
    SessionNotFoundError,
    SessionSaveError,
    StorageError,
    TurnAppendError,
)


class APIException(HTTPException):
    """Base API exception class."""

    pass


class SessionNotFoundAPIException(APIException):
    def __init__(self, session_id: str):
        super().__init__(status_code=HTTP_404_NOT_FOUND, detail=f"Session {session_id} not found")


class ValidationException(APIException):
    def __init__(self, message: str):
        super().__init__(status_code=HTTP_400_BAD_REQUEST, detail=message)


class InvalidSessionIdException(ValidationException):
    def __init__(self, session_id: str):
        super().__init__(f"Invalid session ID format: {session_id}")


# Checked in order; subclasses would need to precede their bases.
_INTERVIEW_ERROR_STATUS: list[tuple[type[InterviewError], int, str]] = [
    (InterviewValidationError, HTTP_400_BAD_REQUEST, "ValidationError"),
    (QuotaExceededError, HTTP_402_PAYMENT_REQUIRED, "QuotaExceeded"),
    (StaleSessionError, HTTP_409_CONFLICT, "SessionEnded"),
    (InvalidSessionStateError, HTTP_409_CONFLICT, "InvalidSessionState"),
    (SessionBusyError, HTTP_409_CONFLICT, "SessionBusy"),
    (UpstreamGenerationError, HTTP_502_BAD_GATEWAY, "UpstreamGenerationError"),
]


def _error_body(error: str, message: str, details=None) -> dict:
    return {"error": error, "message": message, "details": details}


async def interview_exception_handler(request: Request, exc: InterviewError) -> JSONResponse:
    """Map core interview errors to status codes; retryable errors say so in the body."""
    for error_type, status_code, name in _INTERVIEW_ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, name = HTTP_500_INTERNAL_SERVER_ERROR, "InterviewError"

    details = {"retryable": exc.retryable}
    if isinstance(exc, InterviewValidationError):
        details["field"] = exc.field

    log_event(
        "request.interview_error",
        component="api",
        operation="exception_handler",
        error_type=type(exc).__name__,
        status_code=status_code,
        path=request.url.path,
    )
    return JSONResponse(status_code=status_code, content=_error_body(name, str(exc), details))


async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    """Handle storage-related exceptions."""
    if isinstance(exc, SessionNotFoundError):
        return JSONResponse(status_code=HTTP_404_NOT_FOUND, content=_error_body("SessionNotFound", str(exc)))
    if isinstance(exc, InvalidSessionIdError):
        return JSONResponse(status_code=HTTP_400_BAD_REQUEST, content=_error_body("ValidationError", str(exc)))
    if isinstance(exc, (SessionSaveError, SessionLoadError, SessionDeleteError, TurnAppendError)):
        message = "Database operation failed"
    else:
        message = "Unexpected storage error"
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR, content=_error_body("StorageError", message, str(exc))
    )


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    error = "SessionNotFound" if isinstance(exc, SessionNotFoundAPIException) else "ValidationError"
    return JSONResponse(status_code=exc.status_code, content=_error_body(error, exc.detail))
