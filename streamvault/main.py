"""
FastAPI application factory — entry point for the StreamVault backend.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from rich.logging import RichHandler

from streamvault.api.v1.router import v1_router
from streamvault.config import Settings, settings as default_settings
from streamvault.container import build_services
from streamvault.middleware.error_handler import (
    ErrorHandlerMiddleware,
    RequestIdMiddleware,
    register_exception_handlers,
)
from streamvault.services.transcoder import Transcoder
from streamvault.stores.base import DataStore

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Route logs through rich. Leaves existing handlers (uvicorn, pytest) alone."""
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def create_app(
    settings: Settings | None = None,
    store: DataStore | None = None,
    transcoder: Transcoder | None = None,
) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown hooks. Invalid configuration aborts startup here."""
        configure_logging(settings.LOG_LEVEL)
        services = build_services(settings, store, transcoder)
        await services.store.init()
        services.storage.ensure_layout()
        if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
            await services.auth.ensure_admin(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)

        app.state.services = services
        logger.info("StreamVault ready, storage at %s", settings.STORAGE_LOCAL_PATH)

        yield

        await services.close()

    app = FastAPI(
        title="StreamVault API",
        description="Video hosting with encrypted-at-rest storage and streaming decryption.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # ── Middleware (last added runs outermost) ───────────
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Accept-Ranges", "X-Request-ID"],
    )
    register_exception_handlers(app)

    # ── API Routes ───────────────────────────────────────
    app.include_router(v1_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    configure_logging(default_settings.LOG_LEVEL)
    uvicorn.run(
        "streamvault.main:app",
        host=default_settings.BACKEND_HOST,
        port=default_settings.BACKEND_PORT,
    )
