"""
FastAPI application entry point for the friend map backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from friendmap.config import Settings, get_settings
from friendmap.db import DbClient
from friendmap.dependencies import build_db_client
from friendmap.routes import router

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        message = exc.detail
        if exc.status_code == 404 and message == "Not Found":
            message = "Route not found"
        return _error(exc.status_code, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        # Raw inputs are dropped; they may hold values JSON cannot encode (NaN).
        details = [
            {key: value for key, value in error.items() if key not in ("input", "ctx")}
            for error in exc.errors()
        ]
        return _error(400, "Invalid request", details=jsonable_encoder(details))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Something went wrong!")


class AssetFiles(StaticFiles):
    """Static assets; any non-GET request to an unmatched path is a missing route."""

    async def get_response(self, path: str, scope):
        if scope["method"] not in ("GET", "HEAD"):
            raise StarletteHTTPException(status_code=404)
        return await super().get_response(path, scope)


def _register_pages(app: FastAPI, static_dir: Path) -> None:
    @app.get("/", include_in_schema=False)
    def index_page():
        return FileResponse(static_dir / "index.html")

    @app.get("/admin", include_in_schema=False)
    def admin_page():
        return FileResponse(static_dir / "admin.html")

    # Mounted last so API routes and pages take precedence.
    app.mount("/", AssetFiles(directory=static_dir, check_dir=False), name="static")


def create_app(
    settings: Optional[Settings] = None, db: Optional[DbClient] = None
) -> FastAPI:
    """
    Build the application. ``db`` overrides the storage client built from
    settings; the app closes whichever client it holds on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.db is None:
            app.state.db = build_db_client(settings)
            logger.info("Connected to database")
        if not settings.admin_token:
            logger.warning("ADMIN_TOKEN is not set; admin routes are unprotected")
        try:
            yield
        finally:
            app.state.db.close()
            logger.info("Database connection closed")

    app = FastAPI(title="Friend Map Backend", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    _register_pages(app, Path(settings.static_dir))
    return app


app = create_app()
