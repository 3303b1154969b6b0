import os
import threading
import time

from cryptography.fernet import Fernet

# config refuses to import without a key
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")

import fakeredis
import pytest

from scraping.base import PortalAdapter, register_portal
from scraping.models import Child, ChildrenMap, Post, School
from sessions.errors import AuthError
from sessions.registry import SessionRegistry
from utils.store import UserStore

VALID_PASSWORD = "secret"


class PortalScript:
    """Shared, thread-safe recorder and answer queue for ScriptedPortal instances."""

    def __init__(self):
        self.events = []
        self.login_results = []
        self.fetch_results = []
        self.fetch_delay = 0.0
        self.barrier = None
        self.children = ChildrenMap(
            children=(Child(name="Иванов Иван", id="101"), Child(name="Иванова Мария", id="102")),
            is_parent=True,
        )
        self.active = 0
        self.max_active = 0
        self.started = threading.Event()
        self._lock = threading.Lock()

    def record(self, event):
        with self._lock:
            self.events.append(event)

    def count(self, event) -> int:
        with self._lock:
            return self.events.count(event)

    def next_result(self, queue, default):
        with self._lock:
            result = queue.pop(0) if queue else default
        if isinstance(result, BaseException):
            raise result
        return result


SCRIPT = PortalScript()


@register_portal("test")
class ScriptedPortal(PortalAdapter):
    OPERATIONS = frozenset({"get_children_map", "get_posts", "slow", "rendezvous", "explode"})

    def login(self):
        SCRIPT.record("login")
        SCRIPT.next_result(SCRIPT.login_results, None)
        if self.credentials.password != VALID_PASSWORD:
            raise AuthError(log_message=f"Bad credentials for {self.credentials.username}")

    def logout(self):
        SCRIPT.record("logout")

    def _fetch(self, operation, default):
        SCRIPT.record(f"fetch:{operation}")
        return SCRIPT.next_result(SCRIPT.fetch_results, default)

    def get_children_map(self):
        return self._fetch("get_children_map", SCRIPT.children)

    def get_posts(self):
        return self._fetch(
            "get_posts",
            [Post(author="Директор", date="01.09.2024", title="Линейка", message="В 9:00")],
        )

    def slow(self, tag=None):
        with SCRIPT._lock:
            SCRIPT.active += 1
            SCRIPT.max_active = max(SCRIPT.max_active, SCRIPT.active)
        try:
            SCRIPT.record(f"start:{tag}")
            SCRIPT.started.set()
            time.sleep(SCRIPT.fetch_delay)
            SCRIPT.record(f"end:{tag}")
            return tag
        finally:
            with SCRIPT._lock:
                SCRIPT.active -= 1

    def rendezvous(self):
        # Blocks until another session reaches the same point
        SCRIPT.barrier.wait(timeout=5)
        return "met"

    def explode(self):
        raise KeyError("unexpected page layout")


@pytest.fixture(autouse=True)
def script():
    SCRIPT.__init__()
    yield SCRIPT


@pytest.fixture
def schools():
    return [
        School(id=1, name="Test school", website="https://portal.test", type="test", permission=True),
        School(id=2, name="Closed school", website="https://closed.test", type="test", permission=False),
        School(id=3, name="Mystery school", website="https://mystery.test", type="zz"),
    ]


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis()


@pytest.fixture
def fernet():
    return Fernet(os.environ["ENCRYPTION_KEY"].encode())


@pytest.fixture
def store(fake_redis, fernet, schools):
    return UserStore(fake_redis, fernet, schools)


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def app(fake_redis, store, registry):
    from app import create_app

    app = create_app(redis_client=fake_redis, user_store=store, session_registry=registry)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signed_in(client):
    response = client.post(
        "/api/sign_in", json={"login": "ivanov", "passkey": VALID_PASSWORD, "id": 1}
    )
    assert response.status_code == 200, response.get_json()
    return response
