import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from config import Settings
from database import AdminDatabase
from main import create_app
from storage import Storage

SHOP_A_URI = "mongodb://shop-a.internal:27017/shop_a"
SHOP_B_URI = "mongodb://shop-b.internal:27017/shop_b"
BAD_URI = "mongodb://bad-host:27017/db"


class FakeClient(mongomock.MongoClient):
    """In-memory client that keeps its data when closed so the next connection sees it."""

    def __init__(self, servers, host):
        super().__init__(host)
        self._servers = servers

    def close(self):
        self._servers.closed += 1


class FakeServers:
    """Stands in for pymongo.MongoClient: one in-memory server per connection string."""

    def __init__(self):
        self.clients = {}
        self.opened = 0
        self.closed = 0

    def __call__(self, uri, **kwargs):
        if "bad-host" in uri:
            raise ServerSelectionTimeoutError(f"{uri}: [Errno -2] Name or service not known")
        self.opened += 1
        if uri not in self.clients:
            self.clients[uri] = FakeClient(self, uri)
        return self.clients[uri]

    def database(self, uri):
        client = self.clients.get(uri) or FakeClient(self, uri)
        self.clients[uri] = client
        return client.get_default_database("test")


@pytest.fixture
def servers():
    return FakeServers()


@pytest.fixture
def storage(servers):
    admin = AdminDatabase("mongodb://admin.internal:27017", "shop_admin", client_factory=lambda url: mongomock.MongoClient())
    admin.open()
    admin.ensure_indexes()
    return Storage(admin, client_factory=servers)


@pytest.fixture
def settings():
    return Settings(secret_key="test-secret")


@pytest.fixture
def anon(settings, storage):
    with TestClient(create_app(settings, storage)) as c:
        yield c


@pytest.fixture
def client(anon):
    r = anon.post("/api/register", json={"username": "admin", "email": "admin@acme-shops.com", "password": "secret123"})
    assert r.status_code == 201
    return anon


@pytest.fixture
def shop(client):
    r = client.post("/api/shops", json={"name": "Shop A", "location": "Berlin", "mongoUri": SHOP_A_URI})
    assert r.status_code == 201
    return r.json()
