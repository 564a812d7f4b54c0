"""FastAPI application entrypoint.

Configures CORS, error rendering, includes routers, and exposes a
healthcheck endpoint.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .database import init_db
from .deps import get_settings
from .routers import accounts as accounts_router
from .routers import analysis as analysis_router
from .routers import campaigns as campaigns_router
from .routers import credentials as credentials_router
from .routers import insights as insights_router
from .routers import optimizations as optimizations_router
from .services.exceptions import GoogleAdsError
from .telemetry import capture_exception, init_observability, shutdown_observability
from . import schemas


def _error(status_code: int, body: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as {"success": false, "error": ...}."""

    @app.exception_handler(GoogleAdsError)
    async def google_ads_error_handler(request: Request, exc: GoogleAdsError):
        logger.warning("[GOOGLE_ADS] %s %s failed: %s", request.method, request.url.path, exc.message)
        if exc.http_status >= 500:
            capture_exception(exc, extra={"path": request.url.path})
        return _error(exc.http_status, exc.to_dict())

    # Starlette base class so router 404/405s render the same way
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, {"success": False, "error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        messages = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
        return _error(422, {"success": False, "error": "; ".join(messages)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _error(400, {"success": False, "error": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("[API] Unhandled error on %s %s", request.method, request.url.path)
        capture_exception(exc, extra={"path": request.url.path})
        return _error(500, {"success": False, "error": "Internal server error"})


def create_app() -> FastAPI:
    app = FastAPI(
        title="AdScope API",
        description="""
        AdScope manages Google Ads accounts on behalf of agencies and advertisers.

        This API provides endpoints for:
        - Google Ads credentials (own or shared)
        - Account listing and MCC hierarchy detection
        - Campaign, ad, keyword and search term reporting
        - Health score, budget pacing, custom rules and audits
        - AI-powered insights and ad copy
        - Approval-based optimization execution

        ## Authentication

        JWT bearer token in the Authorization header or the access_token cookie.
        """,
        version="0.1.0",
    )

    settings = get_settings()
    logger.info(f"[CORS] Allowed origins: {settings.cors_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(credentials_router.router)
    app.include_router(accounts_router.router)
    app.include_router(campaigns_router.router)
    app.include_router(analysis_router.router)
    app.include_router(insights_router.router)
    app.include_router(optimizations_router.router)

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="""
        Simple health check endpoint to verify the API is running.
        Does not require authentication.
        """
    )
    def health():
        return schemas.HealthResponse(status="ok")

    @app.on_event("startup")
    async def startup_event():
        init_db()
        status = init_observability()
        logger.info("[STARTUP] Observability: %s", status)

    @app.on_event("shutdown")
    async def shutdown_event():
        shutdown_observability()

    return app


app = create_app()
