# utils/errors.py
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Domain error carrying its HTTP status and any extra JSON fields for the client."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None, **extra):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"message": self.message}
        body.update({k: v for k, v in self.extra.items() if v is not None})
        return body


class AuthenticationRequired(AppError):
    status_code = 401

    def __init__(self, message: str = "Authentication required", **extra):
        super().__init__(message, **extra)


class AuthorizationDenied(AppError):
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions", reason: str = None, access_level: str = None, **extra):
        super().__init__(message, reason=reason or message, accessLevel=access_level, **extra)


class NotFoundError(AppError):
    status_code = 404


class ValidationFailed(AppError):
    status_code = 400


class InvalidStateError(AppError):
    status_code = 400


class ConflictError(AppError):
    status_code = 409


class RateLimitedError(AppError):
    status_code = 429


class UserNotFoundError(AppError):
    # Unresolvable user id is a server-side inconsistency, not a denial
    status_code = 500

    def __init__(self, message: str = "User not found", **extra):
        super().__init__(message, **extra)


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
