"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request

from friendmap.config import Settings
from friendmap.db import DbClient, InMemoryDbClient, SqlDbClient

logger = logging.getLogger(__name__)

ADMIN_TOKEN_HEADER = "X-Admin-Token"


def build_db_client(settings: Settings) -> DbClient:
    """
    Open the storage client owned by one application instance.
    """
    if settings.use_in_memory_backends:
        return InMemoryDbClient()
    return SqlDbClient(settings.database_url)


def get_db_client(request: Request) -> DbClient:
    return request.app.state.db


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_admin(
    request: Request,
    x_admin_token: Optional[str] = Header(default=None),
) -> None:
    """
    Guard for privileged routes. Open when no admin token is configured.
    """
    expected = get_app_settings(request).admin_token
    if not expected:
        return
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        logger.warning(
            "Rejected %s %s: missing or invalid %s",
            request.method,
            request.url.path,
            ADMIN_TOKEN_HEADER,
        )
        raise HTTPException(status_code=401, detail="Admin token required")
