"""FastAPI application: shared HTTP client, catalog cache, middleware, error shape."""

import uuid
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from podlister.activities.catalog_cache import CatalogCache
from podlister.api.routes import health, listings
from podlister.api.routes.health import VERSION
from podlister.config import settings
from podlister.logging import configure_logging
from podlister.models.contracts import ErrorResponse
from podlister.utils.printify import PrintifyClient

configure_logging()

logger = structlog.get_logger()


def build_catalog_cache(http_client: httpx.AsyncClient) -> CatalogCache:
    """Process-wide catalog cache fetching through the shared HTTP client."""

    async def _fetch(api_key: str):
        return await PrintifyClient(http_client, api_key).list_blueprints()

    return CatalogCache(
        _fetch,
        settings.catalog_ttl_seconds,
        max_scopes=settings.catalog_max_scopes,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with httpx.AsyncClient() as http_client:
        app.state.http_client = http_client
        app.state.catalog_cache = build_catalog_cache(http_client)
        logger.info("app_started", environment=settings.environment)
        yield


app = FastAPI(
    title="Podlister API",
    version=VERSION,
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a request ID to every request for log correlation.

    The ID is bound into structlog context vars, so it shows up on every
    log line of a streamed upload, and echoed in X-Request-ID.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _error_response(request: Request, status: int, body: ErrorResponse) -> JSONResponse:
    response = JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))
    response.headers["X-Request-ID"] = getattr(
        request.state, "request_id", request.headers.get("X-Request-ID", "")
    )
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return ErrorResponse JSON instead of FastAPI's default {"detail": [...]}."""
    message = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return _error_response(
        request,
        422,
        ErrorResponse(error="validation_error", message=message, retryable=False),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(
        request,
        500,
        ErrorResponse(
            error="internal_error",
            message="An unexpected error occurred",
            retryable=True,
        ),
    )


app.include_router(health.router)
app.include_router(listings.router, prefix="/api")
