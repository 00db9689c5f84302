"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from staydesk.config import get_settings
from staydesk.infrastructure.database import Base, engine
from staydesk.infrastructure.database.session import ensure_sqlite_dir
from staydesk.infrastructure.logging.log_config import setup_logging
from staydesk.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — configure logging and create the local tables."""
    settings = get_settings()
    setup_logging()

    # 1. Local store for fallback records and login state
    ensure_sqlite_dir(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(
        "StayDesk ready: upstream=%s, fallback=%s, local overrides=%s",
        settings.api_base_url,
        "on" if settings.fallback_enabled else "off",
        "on" if settings.allow_local_overrides else "off",
    )

    yield

    # Shutdown
    await engine.dispose()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "staydesk.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
