"""Shared fixtures: isolated settings, a temporary SQLite database, and clients."""

from datetime import timedelta

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from account_api.auth.jwt import TokenIssuer
from account_api.auth.password import PasswordHasher
from account_api.auth.service import AccountService
from account_api.config import Settings
from account_api.db.database import create_engine, create_session_factory, init_db
from account_api.db.store import UserStore
from account_api.main import create_app

TEST_SECRET = "test-secret-please-ignore-0123456789"


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'accounts.db'}"


@pytest.fixture
def settings(database_url):
    """Settings with a known secret and a fast bcrypt cost."""
    return Settings(
        jwt_secret=TEST_SECRET,
        jwt_expires_in=timedelta(days=7),
        database_url=database_url,
        bcrypt_rounds=4,
    )


@pytest.fixture
def issuer(settings):
    return TokenIssuer.from_settings(settings)


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest_asyncio.fixture
async def store(database_url):
    engine = create_engine(database_url)
    await init_db(engine)
    yield UserStore(create_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def service(store, hasher, issuer):
    return AccountService(store=store, hasher=hasher, issuer=issuer)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """Test client with the app lifespan (table creation) running."""
    with TestClient(app) as client:
        yield client
