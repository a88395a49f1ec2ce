"""Pytest configuration and fixtures."""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from shortlinks import database, models, permissions
from shortlinks.config import IpRecordingConfig, Settings, TokenConfig
from shortlinks.database import utcnow
from shortlinks.main import create_app

MASTER_TOKEN = "master-secret"
CLIENT_ADDRESS = "203.0.113.7"


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://")


@pytest.fixture
def token_settings():
    return Settings(
        database_url="sqlite://",
        tokens=TokenConfig(master_token=MASTER_TOKEN, creation_requires_auth=True),
    )


@pytest.fixture
def recording_settings():
    return Settings(
        database_url="sqlite://",
        max_strikes=30,
        ip_recording=IpRecordingConfig(),
        tokens=TokenConfig(master_token=MASTER_TOKEN),
    )


@pytest.fixture
def engine():
    engine = database.create_db_engine(Settings(database_url="sqlite://"))
    database.init_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return database.make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def store_token(db, caps=permissions.Capability.NONE, value="stored-token", expires_in=timedelta(days=1)):
    now = utcnow()
    db.add(
        models.Token(
            token=value,
            created_at=now,
            expires_at=now + expires_in,
            **permissions.to_columns(caps),
        )
    )
    db.commit()
    return value


def with_client_address(app, host):
    """Wrap an ASGI app so every HTTP request appears to come from ``host``."""

    async def wrapped(scope, receive, send):
        if scope["type"] == "http":
            scope = dict(scope, client=(host, 50000))
        await app(scope, receive, send)

    return wrapped


@pytest.fixture
def make_client():
    clients = []

    def _make(settings, host=CLIENT_ADDRESS):
        app = create_app(settings)
        client = TestClient(with_client_address(app, host), follow_redirects=False)
        client.__enter__()
        client.app_state = app.state
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
