"""API error taxonomy.

Every error raised from a route or service is an ``ApiError`` subclass and is
rendered as ``{"message": ..., "errors": {...}}``; ``errors`` maps a field
name to a human-readable message and is left out when empty.
"""

import logging
from typing import Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, str]] = None):
        if message is not None:
            self.message = message
        self.errors = dict(errors or {})
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class NotFound(ApiError):
    status_code = 404
    message = "Resource couldn't be found"


class Forbidden(ApiError):
    status_code = 403
    message = "Forbidden"


class Unauthenticated(ApiError):
    status_code = 401
    message = "Authentication required"


class InvalidCredentials(ApiError):
    status_code = 401
    message = "Invalid credentials"


class ValidationFailed(ApiError):
    status_code = 400
    message = "Bad Request"


class InvalidDateRange(ValidationFailed):
    def __init__(self):
        super().__init__(errors={"endDate": "endDate cannot be on or before startDate"})


class BookingConflict(ApiError):
    status_code = 403
    message = "Sorry, this spot is already booked for the specified dates"

    def __init__(self):
        super().__init__(errors={
            "startDate": "Start date conflicts with an existing booking",
            "endDate": "End date conflicts with an existing booking",
        })


class _Duplicate(ApiError):
    status_code = 409

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, str]] = None, *, legacy: bool = False):
        super().__init__(message, errors)
        if legacy:
            self.status_code = 500


class DuplicateReview(_Duplicate):
    message = "User already has a review for this spot"


class DuplicateUser(_Duplicate):
    message = "User already exists"


def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def database_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=ApiError().to_dict())
