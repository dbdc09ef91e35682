"""FastAPI application entrypoint."""

import uuid

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from critical.api import router as api_router
from critical.api.dependencies import get_auth_dependency
from critical.core.config import settings
from critical.core.errors import (
    CriticalError,
    ExtractionError,
    InvalidInputError,
    NoStylesheetsFoundError,
    ResolutionError,
)
from critical.core.logging import bound_context, configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

ERROR_STATUS = {
    InvalidInputError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NoStylesheetsFoundError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ResolutionError: status.HTTP_502_BAD_GATEWAY,
    ExtractionError: status.HTTP_502_BAD_GATEWAY,
}

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every log event of a request with its X-Request-ID."""

    async def dispatch(self, request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        with bound_context(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestContextMiddleware)

app.include_router(api_router.api_router, prefix=settings.api_v1_prefix)


@app.exception_handler(CriticalError)
async def critical_error_handler(request: Request, exc: CriticalError) -> JSONResponse:
    """Translate generator failures into HTTP errors."""

    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.warning("critical_request_failed", path=request.url.path, error=str(exc), status_code=status_code)
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


@app.get("/healthz", tags=["health"])
def health_check() -> dict:
    """Simple health probe endpoint."""

    logger.debug("health_check_invoked")
    return {"status": "ok", "environment": settings.environment}


@app.get("/auth-check", tags=["health"], dependencies=[Depends(get_auth_dependency)])
def auth_check() -> dict:
    """Endpoint to verify API auth configuration."""

    return {"status": "authorized"}
