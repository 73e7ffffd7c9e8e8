"""Pytest fixtures."""

import itertools
import json
import threading
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from twilio.base.exceptions import TwilioRestException

from ridesafe.db.base import Base
from ridesafe.models import EmergencyContact, SosEvent, User  # noqa: F401 - register for create_all
from ridesafe.main import app
from ridesafe.db.session import get_db
from ridesafe.services.channels.push import ExpoPushChannel
from ridesafe.services.channels.sms import TwilioSmsChannel
from ridesafe.services.dispatch_service import Dispatcher, get_dispatcher

TEST_DATABASE_URL = "sqlite:///./test.db"

TEST_TWILIO_SID = "AC" + "0" * 32
TEST_TWILIO_TOKEN = "test-auth-token"
TEST_TWILIO_FROM = "+15005550006"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakeTwilioMessages:
    """Stands in for ``Client.messages``. Numbers in ``failing`` are rejected."""

    def __init__(self):
        self.failing: set[str] = set()
        self.sent: list[dict] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(self, body, from_, to):
        if to in self.failing:
            raise TwilioRestException(400, "/Messages.json", msg=f"Cannot deliver to {to}", code=21211, method="POST")
        with self._lock:
            sid = f"SM{next(self._ids):032d}"
            self.sent.append({"body": body, "from_": from_, "to": to, "sid": sid})
        return SimpleNamespace(sid=sid)


class FakeExpo:
    """httpx handler for the Expo push endpoint. Tokens in ``unregistered`` bounce."""

    def __init__(self):
        self.unregistered: set[str] = set()
        self.requests: list[dict] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        with self._lock:
            self.requests.append(payload)
        if payload["to"] in self.unregistered:
            return httpx.Response(
                200,
                json={
                    "data": {
                        "status": "error",
                        "message": f"{payload['to']} is not a registered push notification recipient",
                        "details": {"error": "DeviceNotRegistered"},
                    }
                },
            )
        return httpx.Response(200, json={"data": {"status": "ok", "id": f"ticket-{len(self.requests)}"}})


@pytest.fixture(scope="session")
def setup_db():
    """Create tables once for test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(setup_db):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_twilio():
    return FakeTwilioMessages()


@pytest.fixture
def fake_expo():
    return FakeExpo()


@pytest.fixture
def sms_channel(fake_twilio):
    return TwilioSmsChannel(
        TEST_TWILIO_SID,
        TEST_TWILIO_TOKEN,
        TEST_TWILIO_FROM,
        client=SimpleNamespace(messages=fake_twilio),
    )


@pytest.fixture
def push_channel(fake_expo):
    return ExpoPushChannel("https://push.test/--/api/v2/push/send", transport=httpx.MockTransport(fake_expo))


@pytest.fixture
def dispatcher(sms_channel, push_channel):
    return Dispatcher(sms_channel, push_channel, max_workers=4)


@pytest.fixture
def client(setup_db, dispatcher):
    """Test client with overridden DB and fake providers."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


_emails = itertools.count(1)


@pytest.fixture
def register(client):
    """Register + login a fresh user. Returns (auth headers, user json)."""

    def _register(full_name="Test User", phone=None, prefix="user"):
        email = f"{prefix}{next(_emails)}@test.com"
        body = {"email": email, "password": "pass", "full_name": full_name}
        if phone:
            body["phone"] = phone
        user = client.post("/auth/register", json=body).json()
        token = client.post("/auth/login", json={"email": email, "password": "pass"}).json()["access_token"]
        return {"Authorization": f"Bearer {token}"}, user

    return _register
