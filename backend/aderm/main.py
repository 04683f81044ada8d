"""
FastAPI application entry point
"""
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aderm.api.v1.api import api_router
from aderm.core.config import Settings, get_settings
from aderm.core.context import AppContext
from aderm.core.logger import configure_logging, logger
from aderm.middleware.correlation import CorrelationMiddleware
from aderm.utils.exceptions import AdermError, InternalError


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    settings = settings or (context.settings if context else get_settings())
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
    )
    app.state.context = context or AppContext.build(settings)

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(api_router, prefix="/api/v1")

    # ── Correlation ID middleware (must be added before CORS) ─────────────────
    app.add_middleware(CorrelationMiddleware)

    # ── CORS ──────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )

    # ── Errors ────────────────────────────────────────────────────────────────
    @app.exception_handler(AdermError)
    async def aderm_error_handler(request: Request, exc: AdermError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=InternalError("Internal server error").to_dict())

    @app.get("/")
    def read_root():
        return {"message": f"{settings.APP_NAME} API is running", "version": "1.0.0", "docs": "/docs"}

    # ── Startup / Shutdown ────────────────────────────────────────────────────
    @app.on_event("startup")
    async def startup_event():
        logger.info("%s API started", settings.APP_NAME)

    @app.on_event("shutdown")
    async def shutdown_event():
        # Side effects still queued when the process stops get one last run
        await app.state.context.shutdown()
        logger.info("%s API shutdown", settings.APP_NAME)

    return app


app = create_app()
