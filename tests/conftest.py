from unittest.mock import MagicMock

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import USERS, Database, utcnow
from main import create_app
from mailer import Mailer
from security import create_access_token, hash_password


@pytest.fixture
def settings():
    return Settings(JWT_SECRET="test-secret", DATABASE_NAME="finaxial_test", SMTP_HOST="")


@pytest.fixture
def database(settings):
    return Database(name=settings.DATABASE_NAME, client=mongomock.MongoClient())


@pytest.fixture
def mailer():
    return MagicMock(spec=Mailer)


@pytest.fixture
def app(settings, database, mailer):
    app = create_app(settings, database)
    app.state.mailer = mailer
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(database):
    def _make(username="alice", email=None, password="secret123", **extra):
        doc = {
            "username": username,
            "email": email or f"{username}@example.com",
            "password": hash_password(password),
            "lastLogin": None,
            "onboardingCompleted": False,
            "createdAt": utcnow(),
        }
        doc.update(extra)
        doc["_id"] = database[USERS].insert_one(doc).inserted_id
        return doc
    return _make


@pytest.fixture
def auth_headers(settings):
    def _headers(user):
        token = create_access_token(str(user["_id"]), settings)
        return {"Authorization": f"Bearer {token}"}
    return _headers
