"""ASGI application factory for Parley.

Usage:
    hypercorn "parley.asgi:create_app()"
"""

from __future__ import annotations

import logging
from typing import Any

from advanced_alchemy.config import EngineConfig
from advanced_alchemy.extensions.litestar import (
    AsyncSessionConfig,
    SQLAlchemyAsyncConfig,
    SQLAlchemyPlugin,
)
from litestar import Litestar
from litestar.di import Provide
from litestar.types import ASGIApp

from parley.app_factory import EXCEPTION_HANDLERS, create_session_config, provide_gateway
from parley.config import Settings, get_settings
from parley.controllers.messages import MessagesController
from parley.controllers.relationships import RelationshipsController
from parley.db.base import Base
from parley.lib import observability
from parley.lib.hooks import LOGFIRE_CONFIGURED, hooks

logger = logging.getLogger(__name__)


def create_db_config(settings: Settings) -> SQLAlchemyAsyncConfig:
    if "sqlite" in settings.db.url:
        engine_config = EngineConfig(echo=settings.db.echo)
    else:
        engine_kwargs: dict[str, Any] = dict(
            pool_size=settings.db.pool_size,
            max_overflow=settings.db.pool_overflow,
            pool_timeout=settings.db.pool_timeout,
            pool_pre_ping=True,
            echo=settings.db.echo,
        )
        engine_config = EngineConfig(**engine_kwargs)

    # expire_on_commit=False: stores commit per operation and the gateway
    # keeps using the returned rows afterwards
    return SQLAlchemyAsyncConfig(
        connection_string=settings.db.url,
        metadata=Base.metadata,
        create_all=False,
        session_config=AsyncSessionConfig(expire_on_commit=False),
        engine_config=engine_config,
    )


def create_app(settings: Settings | None = None) -> ASGIApp:
    """Create and configure the Litestar application."""
    settings = settings or get_settings()

    observability.configure(settings)

    db_config = create_db_config(settings)
    session_config = create_session_config(
        secret_key=settings.secret_key,
        secure=not settings.debug,
    )

    async def on_startup(_app: Litestar) -> None:
        observability.instrument_sqlalchemy(db_config.get_engine())
        await hooks.do_action(LOGFIRE_CONFIGURED)

    app = Litestar(
        on_startup=[on_startup],
        route_handlers=[MessagesController, RelationshipsController],
        dependencies={"gateway": Provide(provide_gateway)},
        plugins=[SQLAlchemyPlugin(config=db_config)],
        middleware=[session_config.middleware],
        exception_handlers=EXCEPTION_HANDLERS,
        debug=settings.debug,
    )

    app.state.settings = settings

    logger.info("Parley app created (database: %s)", settings.db.url.split("://", 1)[0])
    return observability.instrument_app(app)
