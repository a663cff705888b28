"""
FastAPI application entry point for the registration backend.

Run with ``python -m registration_backend`` or
``uvicorn registration_backend.app:create_app --factory``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from registration_backend.config import Settings, get_settings
from registration_backend.dependencies import db_client_for, storage_client_for
from registration_backend.logging_config import setup_logging
from registration_backend.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    setup_logging(settings.log_level)

    # Open the stores once at startup so every request shares them.
    db = db_client_for(settings)
    storage = storage_client_for(settings)
    logger.info(
        "Registration backend started (db=%s, storage=%s)",
        type(db).__name__,
        type(storage).__name__,
    )
    yield
    logger.info("Shutting down...")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title="Event Registration Backend", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    # Handlers resolve their stores from the same settings the mount below uses.
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(router, prefix=settings.api_prefix)

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.upload_url_prefix,
        StaticFiles(directory=settings.upload_dir),
        name="uploads",
    )
    return app


def main() -> int:
    settings = get_settings()
    # uvicorn logs and exits with status 1 when the port is already taken.
    uvicorn.run(
        create_app(settings), host=settings.host, port=settings.port, log_config=None
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
