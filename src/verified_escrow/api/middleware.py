"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware: injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware: domain exceptions -> structured JSON errors
    3. CORSMiddleware
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from verified_escrow.domain.exceptions import EscrowError, InternalError

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)

# Error kind -> HTTP status. Unknown kinds fall back to 400.
STATUS_BY_CODE: dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "INVALID_AMOUNT": 400,
    "INVALID_PARTY": 400,
    "UNAUTHORIZED": 403,
    "ESCROW_NOT_FOUND": 404,
    "INVALID_STATE": 409,
    "ALREADY_FUNDED": 409,
    "ESCROW_EXISTS": 409,
    "FILE_UNAVAILABLE": 422,
    "SETTLEMENT_FAILED": 502,
    "LEDGER_ERROR": 502,
    "VERIFICATION_TIMED_OUT": 504,
    "INTERNAL_ERROR": 500,
}


def status_for_code(code: str) -> int:
    return STATUS_BY_CODE.get(code, 400)


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request with an X-Request-ID for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except EscrowError as exc:
            status_code = status_for_code(exc.code)
            log = logger.error if status_code >= 500 else logger.warning
            log("domain.error", code=exc.code, error=exc.message, path=request.url.path)
            return JSONResponse(status_code=status_code, content=exc.to_dict())
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(status_code=500, content=InternalError().to_dict())


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware on the FastAPI application.

    The last middleware added is the outermost.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIDMiddleware)
