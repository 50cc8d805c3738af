"""Shared pytest fixtures."""

from collections import defaultdict

import pytest
import yaml
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from parley.db import models  # noqa: F401 - register all models on Base
from parley.db.base import Base
from parley.db.models import User
from parley.db.services.setting_service import MessagingSettings
from parley.lib.hooks import hooks
from parley.messaging import MessagingGateway


@pytest.fixture
def temp_app_yaml(tmp_path):
    """Create a temporary app.yaml file for testing."""
    config_path = tmp_path / "app.yaml"

    def _create_config(config: dict):
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        return config_path

    return _create_config


@pytest.fixture
def clean_hooks():
    """Save and restore hooks state around a test."""
    original_filters = {name: list(handlers) for name, handlers in hooks._filters.items()}
    original_actions = {name: list(handlers) for name, handlers in hooks._actions.items()}
    yield
    hooks._filters = defaultdict(list, original_filters)
    hooks._actions = defaultdict(list, original_actions)


@pytest.fixture
def mock_request_factory():
    """Factory fixture that returns mock requests with a session dict."""
    from unittest.mock import MagicMock

    def _make(session=None):
        request = MagicMock()
        request.session = session if session is not None else {}
        return request

    return _make


# ---------------------------------------------------------------------------
# Database (real SQLite file per test)
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'parley-test.db'}"


@pytest.fixture
async def engine(db_url):
    engine = create_async_engine(db_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def users(session_maker):
    """Seed accounts and return their ids by username.

    ``dave`` is disabled and ``erin`` is waiting for approval.
    """
    async with session_maker() as session:
        accounts = [
            User(username="alice", display_name="Alice"),
            User(username="bob", display_name="Bob"),
            User(username="carol"),
            User(username="dave", is_disabled=True),
            User(username="erin", is_pending=True),
        ]
        session.add_all(accounts)
        await session.commit()
        return {account.username: account.id for account in accounts}


@pytest.fixture
def make_gateway(db_session):
    """Build a SQL-backed gateway with the given messaging settings."""

    def _make(messaging_enabled: bool = True, max_message_length: int = 500) -> MessagingGateway:
        settings = MessagingSettings(
            messaging_enabled=messaging_enabled,
            max_message_length=max_message_length,
        )
        return MessagingGateway.for_session(db_session, settings)

    return _make


@pytest.fixture
def gateway(make_gateway):
    return make_gateway()


@pytest.fixture
async def mutuals(gateway, users):
    """alice and bob follow each other."""
    await gateway.follow(users["alice"], users["bob"])
    await gateway.follow(users["bob"], users["alice"])
    return users
