"""
One-Time Secret Relay - Main Application
FastAPI Entry Point with APScheduler for admission token refill
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from relay import __version__
from relay.config import Settings, settings as default_settings
from relay.middleware import (
    AdmissionMiddleware,
    CorrelationIdMiddleware,
    REQUEST_ID_HEADER,
    SecurityHeadersMiddleware,
    correlation_id_options,
)
from relay.routers.codes import router as codes_router
from relay.routers.messages import router as messages_router
from relay.scheduler import start_scheduler, stop_scheduler
from relay.services.admission import AdmissionController
from relay.services.lifecycle import HealthStatus, LifecycleEngine
from relay.services.monitoring.error_tracking import init_sentry
from relay.services.monitoring.logging import setup_logging
from relay.services.storage import MemoryStore, RedisStore, SecretStore, create_redis_client

logger = structlog.get_logger()


def build_store(settings: Settings) -> SecretStore:
    """
    Select the secret store.

    - RedisStore when REDIS_URL is set (production)
    - MemoryStore when REDIS_URL is not set (testing/development, single process)
    """
    if settings.redis_url:
        client = create_redis_client(
            settings.redis_url,
            max_connections=settings.redis_pool_size,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_connect_timeout,
        )
        logger.info("store_configured", type="RedisStore", pool_size=settings.redis_pool_size)
        return RedisStore(client)

    logger.warning("store_configured", type="MemoryStore", mode="single_process")
    return MemoryStore()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[SecretStore] = None,
    admission: Optional[AdmissionController] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Settings are captured once here and handed to the engine and admission
    controller as plain values.

    Args:
        settings: Application settings (defaults to environment-loaded settings)
        store: Secret store override (tests)
        admission: Admission controller override (tests)
    """
    if settings is None:
        settings = default_settings
    if store is None:
        store = build_store(settings)
    if admission is None:
        admission = AdmissionController(rate=settings.rate_limit_rps, burst=settings.rate_burst)

    app = FastAPI(
        title="One-Time Secret Relay",
        description="Stores client-encrypted secrets that can be read exactly once",
        version=__version__,
        docs_url="/docs" if settings.environment == "development" else None,
        redoc_url="/redoc" if settings.environment == "development" else None,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.admission = admission
    app.state.max_body_bytes = settings.max_body_bytes
    app.state.scheduler = None
    app.state.engine = LifecycleEngine(
        store,
        placeholder_ttl=settings.placeholder_ttl,
        message_ttl=settings.message_ttl,
        code_length=settings.code_length,
        max_attempts=settings.code_max_attempts,
    )

    # Middleware: last added runs first.
    # Request order: correlation id -> security headers -> CORS -> admission -> routes
    app.add_middleware(AdmissionMiddleware, controller=admission)
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_methods=["GET", "PUT", "POST", "OPTIONS"],
            allow_headers=["Content-Type", REQUEST_ID_HEADER],
            expose_headers=[REQUEST_ID_HEADER, "Location"],
        )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CorrelationIdMiddleware, **correlation_id_options())

    # Register routers
    app.include_router(codes_router)
    app.include_router(messages_router)

    @app.on_event("startup")
    async def startup_event():
        """Application Startup"""
        logger.info("startup", environment=settings.environment, store=type(store).__name__)
        app.state.scheduler = start_scheduler(admission, environment=settings.environment)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Application Shutdown"""
        logger.info("shutdown")
        stop_scheduler(app.state.scheduler)
        store.close()

    @app.get("/health")
    def health_check():
        """
        Health Check Endpoint

        Always 200; "redis" reflects only backend liveness.
        """
        status = app.state.engine.health_check()
        return JSONResponse(
            content={
                "status": "ok",
                "redis": "ok" if status is HealthStatus.OK else "error",
            },
            status_code=200
        )

    return app


setup_logging(default_settings.log_level, default_settings.environment)
init_sentry(default_settings.sentry_dsn, default_settings.sentry_environment or default_settings.environment)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "relay.main:app",
        host=default_settings.host,
        port=default_settings.port,
        timeout_keep_alive=int(default_settings.idle_timeout.total_seconds()),
        reload=default_settings.environment == "development"
    )
