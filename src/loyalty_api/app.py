from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from loyalty_api.core.settings import settings
from loyalty_api.db.session import engine
from .api.routes import api_router
from .core.logging import configure_logging


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Loyalty API starting",
        environment=settings.environment,
        identity_fallback=settings.identity_fallback,
        lock_timeout_seconds=settings.redemption_lock_timeout_seconds,
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Loyalty API stopped")


def create_app() -> FastAPI:
    """Application factory for the loyalty rewards API."""
    configure_logging(
        service_name="loyalty-api",
        environment=settings.environment,
        version=APP_VERSION,
        level=settings.log_level.upper(),
    )

    app = FastAPI(
        title="Loyalty API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
