"""
Error taxonomy for the API.

Every failure a route can report is an ``ApiError``. They are ``HTTPException``
subclasses so FastAPI treats them like any other HTTP error, but the handlers
installed by ``install_error_handlers`` render them as
``{"message", "code", "field"}`` instead of ``{"detail"}``.
"""
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("study_share.errors")


class ApiError(HTTPException):
    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, field: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message
        if code:
            self.code = code
        self.field = field

    def to_dict(self) -> dict:
        body = {"message": self.message, "code": self.code}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"


class MissingIdentifierError(ValidationError):
    code = "MISSING_IDENTIFIER"


class NoSharingCodeError(ValidationError):
    code = "NO_SHARING_CODE"


class InvalidStatusError(ValidationError):
    code = "INVALID_STATUS"


class DuplicateError(ApiError):
    status_code = 400
    code = "DUPLICATE"


class DuplicateCodeError(DuplicateError):
    code = "TEACHER_CODE_TAKEN"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class TeacherNotFoundError(NotFoundError):
    code = "TEACHER_NOT_FOUND"


class NotSharedError(NotFoundError):
    code = "NOT_SHARED"


class ForbiddenError(ApiError):
    status_code = 403
    code = "FORBIDDEN"


class AuthError(ApiError):
    status_code = 401
    code = "AUTH_INVALID_TOKEN"


class ServerError(ApiError):
    status_code = 500
    code = "SERVER_ERROR"


def _field_name(loc) -> str:
    # ("body", "password") -> "password"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or str(loc[-1])


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "Invalid value")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"message": "Validation failed", "code": "VALIDATION_ERROR", "errors": errors},
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=ServerError("Server error").to_dict())
