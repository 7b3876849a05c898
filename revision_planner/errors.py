from typing import Any, Dict, Optional, Union

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from revision_planner.config import logger
from revision_planner.data.schemas.enums import ErrorKind


# Custom exceptions
class AppException(Exception):
    """
    Base exception for application-specific errors.

    ``kind`` is the category reported by problem store operations; errors that
    only occur at the HTTP edge (authentication, authorization) leave it unset.
    """

    kind: Optional[ErrorKind] = None

    def __init__(self, status_code: int, detail: Union[str, Dict[str, Any]]):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class DatabaseException(AppException):
    """A read or write against the problem database failed."""

    kind = ErrorKind.PERSISTENCE

    def __init__(self, detail: str = "Operation failed."):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail
        )


class AuthenticationException(AppException):
    def __init__(self, detail: str = "Authentication failed"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class AuthorizationException(AppException):
    def __init__(self, detail: str = "Not authorized to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ResourceNotFoundException(AppException):
    """The targeted problem, revision or account does not exist for this user."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ValidationException(AppException):
    kind = ErrorKind.VALIDATION

    def __init__(self, detail: Union[str, Dict[str, Any], list] = "Validation error"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail
        )


class WindowExpiredException(AppException):
    """Raised when a revision is undone after its grace window has closed."""

    kind = ErrorKind.WINDOW_EXPIRED

    def __init__(self, detail: str = "Can only undo revisions within 5 minutes."):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


# Exception handlers
async def app_exception_handler(request: Request, exc: AppException):
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"Application error on {request.url.path}: {exc.detail} (Status: {exc.status_code})")
    else:
        logger.warning(f"Request rejected on {request.url.path}: {exc.detail} (Status: {exc.status_code})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    formatted_errors = [
        {
            "type": error["type"],
            "loc": error["loc"],
            "msg": error["msg"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Invalid request body on {request.url.path}: {formatted_errors}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": formatted_errors},
    )


async def pydantic_validation_exception_handler(request: Request, exc: ValidationError):
    errors = exc.errors(include_url=False, include_context=False, include_input=False)
    logger.error(f"Pydantic validation error: {errors}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Operation failed."},
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, pydantic_validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
