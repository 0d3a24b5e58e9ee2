# app/main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from motor.motor_asyncio import AsyncIOMotorDatabase

# Configure logging
logging.basicConfig(level=logging.INFO)

from app.api.v1.api import api_router
from app.core.config import HSTS_HEADER, SECURITY_HEADERS, Settings, get_settings
from app.db.mongodb_utils import close_mongo_connection, connect_to_mongo
from app.storage.base import ObjectStorageBackend
from app.storage.factory import build_storage_backend
from app.storage.local import LocalStorageBackend

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[ObjectStorageBackend] = None,
    database: Optional[AsyncIOMotorDatabase] = None,
) -> FastAPI:
    """
    Build the application. Configuration and the storage backend are resolved
    here, once; a missing signing key or unusable storage credentials abort
    startup with SecurityConfigError.
    """
    settings = settings or get_settings()
    storage = storage or build_storage_backend(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handles startup and shutdown events."""
        connected = False
        if app.state.database is None:
            app.state.database = await connect_to_mongo(settings)
            connected = True
        try:
            yield  # ----- Application running -----
        finally:
            if connected:
                await close_mongo_connection()

    app = FastAPI(
        title="Music Player API",
        description="Artists, albums and songs with signed sessions and scoped media access.",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )
    app.state.settings = settings
    app.state.storage = storage
    app.state.database = database

    allow_any_origin = "*" in settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        # Wildcard origins cannot be combined with credentialed requests
        allow_credentials=not allow_any_origin,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)

        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = HSTS_HEADER

        # Remove server information disclosure
        if "server" in response.headers:
            del response.headers["server"]

        return response

    app.include_router(api_router)

    # Local uploads are served as static files; remote backends use signed URLs
    if isinstance(storage, LocalStorageBackend):
        mount_path = "/" + os.path.basename(os.path.normpath(storage.directory))
        app.mount(mount_path, StaticFiles(directory=storage.directory), name="uploads")

    @app.get("/", response_class=PlainTextResponse)
    async def read_root():
        return "Welcome to the Music Player API"

    logger.info(f"Application created with {storage.name} storage and {settings.token_transport} session transport")
    return app
