"""Global exception handlers rendering the JSON error envelope."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cubord.exceptions import AuthenticationRequiredError, CubordError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_cubord_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_cubord_error_handler(app: FastAPI) -> None:
    @app.exception_handler(CubordError)
    async def cubord_error_handler(request: Request, exc: CubordError):
        """Handle every error raised on purpose by the service layer."""
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}", exc_info=exc)
        else:
            logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")

        headers = None
        if isinstance(exc, AuthenticationRequiredError):
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=headers)


def _register_validation_error_handler(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle request body and parameter validation errors."""
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all; never leaks internal details."""
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        message = "An unexpected error occurred"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {"code": "INTERNAL_ERROR", "message": message, "details": None},
                "detail": message,
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    message = "Invalid request data"
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": message,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
        "detail": message,
    }
