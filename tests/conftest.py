"""Shared test setup: isolated data dir, signed tokens, fake push service."""

import os
import tempfile
import time
from types import SimpleNamespace

# Setup environment for testing (before anything imports handwash.config)
os.environ["HANDWASH_DATA_DIR"] = tempfile.mkdtemp()
os.environ["HANDWASH_DB_PATH"] = os.path.join(os.environ["HANDWASH_DATA_DIR"], "test.db")
os.environ["HANDWASH_JWT_SECRET"] = "test-secret-0123456789-abcdefghijklmnop"
os.environ["HANDWASH_JWT_ALGORITHM"] = "HS256"
os.environ["HANDWASH_REMINDER_ENABLED"] = "false"
os.environ["HANDWASH_VAPID_PUBLIC_KEY"] = "test-public-key"
os.environ["HANDWASH_VAPID_PRIVATE_KEY"] = "test-private-key"

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi import Depends, Request  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from pywebpush import WebPushException  # noqa: E402
from sqlmodel import Session, select  # noqa: E402

from handwash.api.deps import get_dispatcher, get_store  # noqa: E402
from handwash.database import engine, init_db  # noqa: E402
from handwash.main import app  # noqa: E402
from handwash.models.record import Record  # noqa: E402
from handwash.services.notification_service import NotificationDispatcher, VapidCredentials  # noqa: E402
from handwash.store import KeyValueStore  # noqa: E402


class FakePushService:
    """Stands in for pywebpush.webpush. Records every call; fails on demand per endpoint."""

    def __init__(self):
        self.calls: list[dict] = []
        self.status_by_endpoint: dict[str, int] = {}
        self.error_by_endpoint: dict[str, Exception] = {}

    def __call__(self, subscription_info, data=None, **kwargs):
        endpoint = subscription_info["endpoint"]
        self.calls.append({"endpoint": endpoint, "data": data, **kwargs})
        if endpoint in self.error_by_endpoint:
            raise self.error_by_endpoint[endpoint]
        status = self.status_by_endpoint.get(endpoint)
        if status:
            raise WebPushException(
                f"Push failed: {status}",
                response=SimpleNamespace(status_code=status, text=""),
            )

    def sent_to(self, endpoint: str) -> int:
        return sum(1 for c in self.calls if c["endpoint"] == endpoint)


def make_token(sub: str, email: str | None = None, **claims) -> str:
    payload = {
        "sub": sub,
        "email": email or f"{sub}@example.com",
        "exp": int(time.time()) + 3600,
        **claims,
    }
    return jwt.encode(payload, os.environ["HANDWASH_JWT_SECRET"], algorithm="HS256")


@pytest.fixture(autouse=True)
def clean_records():
    """Every test starts from an empty table."""
    init_db()
    with Session(engine) as session:
        for record in session.exec(select(Record)).all():
            session.delete(record)
        session.commit()
    yield


@pytest.fixture
def push_sender():
    return FakePushService()


@pytest.fixture
def credentials():
    return VapidCredentials(
        subject="mailto:test@example.com",
        public_key="test-public-key",
        private_key="test-private-key",
    )


@pytest.fixture
def store():
    with Session(engine) as session:
        yield KeyValueStore(session)


@pytest.fixture
def client(push_sender):
    def dispatcher_override(request: Request, store: KeyValueStore = Depends(get_store)):
        return NotificationDispatcher(store, request.app.state.vapid_credentials, sender=push_sender)

    app.dependency_overrides[get_dispatcher] = dispatcher_override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    """auth("alice") -> Authorization header for that subject."""
    def _auth(sub: str) -> dict:
        return {"Authorization": f"Bearer {make_token(sub)}"}
    return _auth


@pytest.fixture
def subscription():
    """subscription("phone-a") -> browser PushSubscription JSON."""
    def _subscription(name: str) -> dict:
        return {
            "endpoint": f"https://push.example.com/send/{name}",
            "keys": {"p256dh": f"p256dh-{name}", "auth": f"auth-{name}"},
        }
    return _subscription


@pytest.fixture
def fresh_store():
    """fresh_store() -> store on a new session, for reading what the API wrote."""
    sessions = []

    def _fresh() -> KeyValueStore:
        session = Session(engine)
        sessions.append(session)
        return KeyValueStore(session)

    yield _fresh
    for session in sessions:
        session.close()


@pytest.fixture
def reject_writes():
    """reject_writes("DELETE", "USER#bob", "PUSH#") -> the database aborts matching writes."""
    triggers = []

    def _reject(operation: str, pk: str, sk_prefix: str) -> None:
        name = f"reject_{operation.lower()}_{len(triggers)}"
        row = "OLD" if operation == "DELETE" else "NEW"
        with engine.begin() as conn:
            conn.exec_driver_sql(
                f"CREATE TRIGGER {name} BEFORE {operation} ON records "
                f"WHEN {row}.pk = '{pk}' AND substr({row}.sk, 1, {len(sk_prefix)}) = '{sk_prefix}' "
                "BEGIN SELECT RAISE(ABORT, 'write rejected'); END"
            )
        triggers.append(name)

    yield _reject
    with engine.begin() as conn:
        for name in triggers:
            conn.exec_driver_sql(f"DROP TRIGGER IF EXISTS {name}")
