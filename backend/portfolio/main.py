"""Portfolio FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from portfolio import __version__
from portfolio.config import settings
from portfolio.database import async_session, init_db
from portfolio.services import init_services, shutdown_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # === STARTUP ===
    _setup_logging()

    await init_db()
    await init_services(async_session)
    logger.info("Portfolio v%s started — listening on %s:%s", __version__, settings.host, settings.port)

    try:
        yield
    finally:
        # === SHUTDOWN ===
        await shutdown_services()
        logger.info("Portfolio shutting down")


def _setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for noisy in ("aiosqlite", "multipart", "python_multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _ensure_dirs() -> None:
    for d in (settings.data_dir, settings.blob_dir, settings.static_dir, settings.template_dir):
        Path(d).mkdir(parents=True, exist_ok=True)


def create_app() -> FastAPI:
    """Application factory."""
    from portfolio.api.routes import api_router

    _ensure_dirs()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        debug=settings.debug,
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_prefix)

    # Static root: served byte-for-byte, never through the placement engine
    app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")
    logger.info("Static files served from %s", settings.static_dir)

    return app


app = create_app()


def run(**kwargs: Any) -> None:
    import uvicorn

    uvicorn.run(
        "portfolio.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=settings.uvicorn_workers,
        log_level=settings.log_level.lower(),
        **kwargs,
    )


if __name__ == "__main__":
    run()
