import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SMTP_HOST", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.main import app
from backoffice.api import deps
from backoffice.db.base import Base
from backoffice.core.security import hash_password
from backoffice.models.user import User
from backoffice.services.mailer import Mailer, MailDeliveryError


class FakeMailer(Mailer):
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, html):
        if self.fail:
            raise MailDeliveryError("smtp down")
        self.sent.append({"to": to, "subject": subject, "html": html})


@pytest.fixture()
def SessionTest():
    eng = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield sessionmaker(bind=eng, autoflush=False, autocommit=False, future=True)
    eng.dispose()


@pytest.fixture()
def session(SessionTest):
    s = SessionTest()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def mail():
    return FakeMailer()


@pytest.fixture()
def client(SessionTest, mail):
    def _db():
        s = SessionTest()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[deps.db] = _db
    app.dependency_overrides[deps.mailer] = lambda: mail
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_user(session):
    def _make(email, role="admin", password="secret123", name="Usuario Teste", is_active=True):
        u = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role,
            department="",
            position="",
            is_active=is_active,
        )
        session.add(u)
        session.commit()
        session.refresh(u)
        return u

    return _make


@pytest.fixture()
def login(client):
    """Log in and return bearer headers; the session cookie is dropped so each call is explicit."""

    def _login(email, role, password="secret123"):
        r = client.post(
            "/api/v1/users/login",
            json={"email": email, "password": password, "user_type": role},
        )
        assert r.status_code == 200, r.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login
