"""
Domain errors raised by the service layer.

Services never raise HTTPException. Endpoints translate these through
`http_error()` and the handlers registered in main.py render them as
`{"success": false, "message": ...}`.
"""

from fastapi import HTTPException, status


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailedError(ServiceError, ValueError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class MeetingProviderError(Exception):
    """Raised when the meeting provider rejects a request."""


def http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)
