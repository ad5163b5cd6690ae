from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from chirpy.core.database import Database
from chirpy.core.sessions import SessionManager
from chirpy.core.settings import Settings
from chirpy.core.storage import JsonFilePersistence
from chirpy.main import create_app

TEST_SECRET = "test-secret-that-is-long-enough-for-hs256-signing"
TEST_API_KEY = "f271c81ff7084ee5b99a5091b42d486e"


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, now=None):
        self.now = now or datetime.now(timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret=TEST_SECRET,
        polka_api_key=TEST_API_KEY,
        data_dir=str(tmp_path),
        static_dir=str(tmp_path),
    )


@pytest.fixture
def db(settings):
    return Database(JsonFilePersistence(settings.database_path))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(db, settings, clock):
    return SessionManager(db, settings, clock=clock)


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
