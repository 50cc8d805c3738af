"""Shared configuration helpers for ASGI app creation."""

from __future__ import annotations

import hashlib
from typing import Any

from litestar.datastructures import State
from litestar.exceptions import HTTPException
from litestar.middleware.session.client_side import CookieBackendConfig
from sqlalchemy.ext.asyncio import AsyncSession

from parley.db.services.setting_service import load_messaging_settings
from parley.lib.exceptions import http_exception_handler, internal_server_error_handler
from parley.messaging import MessagingGateway

EXCEPTION_HANDLERS: dict[type[Exception], Any] = {
    HTTPException: http_exception_handler,
    Exception: internal_server_error_handler,
}


def create_session_config(
    secret_key: str,
    max_age: int = 86400,
    secure: bool = False,
    cookie_name: str = "session",
) -> CookieBackendConfig:
    """Create a cookie-backed session config."""
    session_secret = hashlib.sha256(secret_key.encode()).digest()
    return CookieBackendConfig(
        secret=session_secret,
        key=cookie_name,
        max_age=max_age,
        httponly=True,
        secure=secure,
        samesite="lax",
    )


async def provide_gateway(state: State, db_session: AsyncSession) -> MessagingGateway:
    """Per-request gateway with the current admin messaging settings."""
    settings = await load_messaging_settings(db_session, state.settings.messaging)
    return MessagingGateway.for_session(db_session, settings)
