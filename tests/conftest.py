import re
from typing import List, Tuple

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from lms.config import Settings
from lms.core.errors import UpstreamError
from lms.core.security import Role, TokenClaims
from lms.db.mongo import MongoDatabase
from lms.main import create_app
from lms.services.email_service import EmailSender

API = "/api/v1"

RESET_LINK = re.compile(r"/reset-password/([0-9a-f]+)")


class RecordingEmailSender(EmailSender):
    """Keeps sent messages in memory; can be switched to fail."""

    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []
        self.fail = False

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise UpstreamError("SMTP server unavailable")
        self.sent.append((to, subject, html_body))

    def last_reset_token(self) -> str:
        _, _, body = self.sent[-1]
        return RESET_LINK.search(body).group(1)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        SECRET_KEY="test-secret-key",
        BCRYPT_ROUNDS=4,
        COOKIE_SECURE=False,
        UPLOAD_TMP_DIR=str(tmp_path / "uploads"),
        MEDIA_STORAGE_TYPE="local",
        MEDIA_STORAGE_DIR=str(tmp_path / "media"),
        MEDIA_BASE_URL="http://testserver/media",
        FRONTEND_URL="http://frontend.test",
        LOG_FORMAT="console",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def database(settings):
    return MongoDatabase(settings, client=AsyncMongoMockClient())


@pytest.fixture
def mailer():
    return RecordingEmailSender()


@pytest.fixture
def app(settings, database, mailer):
    return create_app(settings, database=database, email_sender=mailer)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def register(client, email="a@x.com", password="password1", full_name="Alice Example", files=None):
    return client.post(
        f"{API}/users/register",
        data={"fullName": full_name, "email": email, "password": password},
        files=files,
    )


def login(client, email="a@x.com", password="password1"):
    return client.post(f"{API}/users/login", json={"email": email, "password": password})


def bearer(app, role=Role.ADMIN, email="admin@lms.io"):
    """Authorization header carrying a freshly minted token."""
    token = app.state.token_issuer.issue(TokenClaims(id=str(ObjectId()), role=role, email=email))
    return {"Authorization": f"Bearer {token}"}
