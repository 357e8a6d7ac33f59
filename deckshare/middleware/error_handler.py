# deckshare/middleware/error_handler.py
# Application errors and their JSON rendering
# Every error leaves the API as {"error": {"code", "message", "details"?, "request_id"?}}

import logging
import traceback
from typing import Callable, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.middleware.base import BaseHTTPMiddleware

from deckshare.utils.logger import log_exception

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Error with an API code and HTTP status. Subclasses set the defaults."""

    error_code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "An internal error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}


class DatabaseError(AppError):
    error_code = "DATABASE_ERROR"
    status_code = 503
    default_message = "Database operation failed"


class ValidationError(AppError):
    error_code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation failed"


class NotFoundError(AppError):
    error_code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class ImageNotReadyError(AppError):
    """No fresh image yet; the client may poll again or trigger a render."""
    error_code = "IMAGE_NOT_READY"
    status_code = 404

    def __init__(self, deckcode: str):
        super().__init__("Deck image is not ready. Try again later.", details={"deckcode": deckcode})


class RenderFailedError(AppError):
    """Every render backend failed for this request."""
    error_code = "RENDER_FAILED"
    status_code = 502

    def __init__(self, deckcode: str):
        super().__init__("Deck image could not be rendered", details={"deckcode": deckcode})


class ShortidCollisionError(AppError):
    """Insert lost a race for a shortid; retry with a fresh one."""
    error_code = "SHORTID_COLLISION"
    status_code = 409

    def __init__(self, shortid: str):
        super().__init__(f"Short id '{shortid}' is already taken", details={"shortid": shortid})
        self.shortid = shortid


class ShortidSpaceExhaustedError(AppError):
    """Allocator widened past its maximum length without finding a free id."""
    error_code = "SHORTID_EXHAUSTED"
    status_code = 503

    def __init__(self, max_length: int):
        super().__init__(f"No free short id up to length {max_length}", details={"max_length": max_length})


def create_error_response(
    error_code: str,
    message: str,
    status_code: int,
    details: dict = None,
    request_id: str = None
) -> JSONResponse:
    body = {"code": error_code, "message": message}
    if details:
        body["details"] = details
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": body})


def _app_error_response(exc: AppError, request_id: Optional[str]) -> JSONResponse:
    return create_error_response(exc.error_code, exc.message, exc.status_code, exc.details, request_id)


def _internal_error_response(exc: Exception, request: Request, request_id: Optional[str], debug: bool) -> JSONResponse:
    log_exception(exc, context=f"Unhandled error on {request.method} {request.url.path}")
    details = {"type": type(exc).__name__, "traceback": traceback.format_exc()} if debug else None
    return create_error_response(
        "INTERNAL_ERROR", AppError.default_message, 500, details, request_id
    )


def _database_error_response(exc: Exception, request_id: Optional[str]) -> JSONResponse:
    # connection-level failures; the request may succeed on retry
    logger.error(f"Database unavailable: {type(exc).__name__}: {exc}")
    return _app_error_response(DatabaseError(), request_id)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Outermost guard: turns anything a route lets escape into the JSON error shape."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-ID", str(id(request)))
        try:
            return await call_next(request)
        except AppError as e:
            logger.warning(f"{e.error_code} on {request.url.path}: {e.message}", extra={"request_id": request_id})
            return _app_error_response(e, request_id)
        except (OperationalError, InterfaceError) as e:
            return _database_error_response(e, request_id)
        except HTTPException as e:
            return create_error_response("HTTP_ERROR", str(e.detail), e.status_code, request_id=request_id)
        except Exception as e:
            return _internal_error_response(e, request, request_id, self.debug)


def setup_exception_handlers(app):
    """Register the same rendering for errors raised inside FastAPI's routing."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")
        return _app_error_response(exc, request.headers.get("X-Request-ID"))

    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def database_error_handler(request: Request, exc: Exception):
        return _database_error_response(exc, request.headers.get("X-Request-ID"))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        return _internal_error_response(exc, request, request.headers.get("X-Request-ID"), debug=False)
