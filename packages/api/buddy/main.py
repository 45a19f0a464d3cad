# This project was developed with assistance from AI tools.
"""FastAPI application entry point."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import ApiError
from .inference.client import log_ai_status
from .routes import (
    checklist,
    committee,
    deals,
    documents,
    facts,
    health,
    ledger,
    lifecycle,
    mode,
    policy,
)
from .schemas.error import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application startup/shutdown lifecycle."""
    log_ai_status()
    yield


app = FastAPI(
    title="Buddy the Underwriter API",
    description="Deal workflow for SBA and commercial loan underwriting",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

_HTTP_ERROR_CODES: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    422: "validation_error",
    500: "internal_error",
    503: "service_unavailable",
}


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id", str(uuid.uuid4()))


def _build_error(status_code: int, error: str | None, detail: str, request_id: str) -> ErrorResponse:
    return ErrorResponse(
        error=error or _HTTP_ERROR_CODES.get(status_code, "error"),
        status=status_code,
        detail=detail,
        request_id=request_id,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Convert HTTPException to the error envelope."""
    error = exc.error if isinstance(exc, ApiError) else None
    body = _build_error(exc.status_code, error, str(exc.detail), _request_id(request))
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert Pydantic validation errors to the error envelope."""
    body = _build_error(422, None, str(exc.errors()), _request_id(request))
    return JSONResponse(status_code=422, content=body.model_dump())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions -- log and return 500."""
    request_id = _request_id(request)
    logger.exception("Unhandled exception (request_id=%s)", request_id)
    body = _build_error(500, None, "An unexpected error occurred.", request_id)
    return JSONResponse(status_code=500, content=body.model_dump())


# Include routers
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(deals.router, prefix="/api/deals", tags=["deals"])
app.include_router(lifecycle.router, prefix="/api/deals", tags=["lifecycle"])
app.include_router(checklist.router, prefix="/api/deals", tags=["checklist"])
app.include_router(documents.router, prefix="/api/deals", tags=["documents"])
app.include_router(mode.router, prefix="/api/deals", tags=["mode"])
app.include_router(committee.router, prefix="/api/deals", tags=["committee"])
app.include_router(ledger.router, prefix="/api/deals", tags=["ledger"])
app.include_router(facts.router, prefix="/api/deals", tags=["facts"])
app.include_router(policy.deal_router, prefix="/api/deals", tags=["policy"])
app.include_router(policy.rules_router, prefix="/api/policy", tags=["policy"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "Welcome to Buddy the Underwriter API"}
