"""
tskills Registry API Server

Entry point for the FastAPI application.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tskills_registry import __version__
from tskills_registry.api.v1 import router as api_v1_router
from tskills_registry.api.v1.auth import router as auth_router
from tskills_registry.api.v1.rate_limits import rate_limit_headers
from tskills_registry.core.config import Settings, get_settings
from tskills_registry.core.database import Database
from tskills_registry.core.errors import RateLimitError, RegistryError
from tskills_registry.core.logging import configure_logging
from tskills_registry.core.middleware import SecurityHeadersMiddleware
from tskills_registry.services.registry import RegistryService

log = structlog.get_logger()


async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimitError):
        headers = rate_limit_headers(exc.limit, exc.remaining, exc.reset_at, exc.retry_after)
    if exc.status_code >= 500:
        log.error("request.failed", path=request.url.path, code=exc.code, message=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.to_dict()},
        headers=headers,
    )


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[RegistryService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A pre-built ``registry`` (tests, embedding) is used as-is; otherwise the
    lifespan opens a ``Database`` from settings and disposes it on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: Optional[Database] = None
        if getattr(app.state, "registry", None) is None:
            owned = Database(settings.database_url, echo=settings.debug)
            await owned.seed_rate_limits(settings.default_rate_limits)
            app.state.registry = RegistryService(owned, settings=settings)
        log.info("tskills registry starting", version=__version__)
        yield
        log.info("tskills registry shutting down")
        if owned is not None:
            await owned.dispose()

    app = FastAPI(
        title="tskills Registry",
        description="Private registry for versioned, access-controlled skills.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry

    # Middleware (last added runs outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Anonymous-Id"],
        expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    app.add_exception_handler(RegistryError, registry_error_handler)

    # Auth routes
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check(request: Request):
        """Readiness check: the database answers a ping."""
        try:
            await request.app.state.registry.db.ping()
        except Exception as exc:
            log.warning("ready.db_unavailable", error=str(exc))
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {"status": "ready"}

    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
