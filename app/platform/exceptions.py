from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)


class AppError(Exception):
    """
    Operational error carrying everything the API layer needs to answer:
    an HTTP status, a stable machine code and contextual details.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details or {}


# ── Fatal to a run ─────────────────────────────

class NavigationError(AppError):
    """Page failed to load or answered with a non-2xx status."""
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "PAGE_LOAD_FAILED"


class NavigationTimeoutError(AppError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    code = "TIMEOUT_ERROR"


class NetworkError(AppError):
    """DNS failure, refused or reset connection."""
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "NETWORK_ERROR"


class BrowserLaunchError(AppError):
    code = "BROWSER_INIT_ERROR"


class AnalysisError(AppError):
    code = "ANALYSIS_ERROR"


class InvalidURLError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_URL"


# ── Absorbed into results ──────────────────────

class CheckExecutionError(AppError):
    code = "CHECK_EXECUTION_ERROR"


class ScreenshotCaptureError(AppError):
    code = "SCREENSHOT_ERROR"


class StorageError(AppError):
    code = "STORAGE_ERROR"


def add_exception_handlers(app):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return api_response(
            message=exc.message,
            status_code=exc.status_code,
            data={"code": exc.code, "details": exc.details},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(message=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
