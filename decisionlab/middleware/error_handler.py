"""
Error handling for the HTTP layer.

- Domain errors map to client errors: ValidationError → 422 with every
  violated rule, NotFoundError → 404.
- Anything else is caught by ErrorHandlerMiddleware and turned into a
  generic 500 carrying an error_id for correlation with server logs.
  Stack traces and internal details never reach the client.
"""

import traceback
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from decisionlab.config import settings
from decisionlab.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Outermost middleware — catches everything.

    Body: {"error": "...", "error_id": "<uuid>", "status": 500}
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            error_id = str(uuid.uuid4())
            logger.error(
                "unhandled_exception",
                error_id=error_id,
                path=request.url.path,
                method=request.method,
                error=str(exc),
                traceback=traceback.format_exc(),
            )

            body: dict = {
                "error": "An internal error occurred. Please try again later.",
                "error_id": error_id,
                "status": 500,
            }
            if settings.debug:
                body["debug_hint"] = type(exc).__name__
            return JSONResponse(status_code=500, content=body)


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("validation_error", path=request.url.path, errors=exc.errors)
    return JSONResponse(
        status_code=422,
        content={"error": str(exc), "errors": exc.errors, "status": 422},
    )


async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": str(exc), "status": 404},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(NotFoundError, _not_found_handler)
