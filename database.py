"""
MongoDB access for the Shop Admin panel.

The admin database (users, shops) is opened once when the app starts and
closed at shutdown. Shop databases are never kept open: every operation on one
goes through tenant_database(), which connects, yields the database and closes
the client again, whether the operation succeeded or not.
"""
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

logger = logging.getLogger(__name__)

USERS = "users"
SHOPS = "shops"
CATEGORIES = "categories"
PRODUCTS = "products"

# database used when a connection string names none
DEFAULT_TENANT_DB = "test"

ClientFactory = Callable[..., MongoClient]


def to_object_id(value: str) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def oid_to_str(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    d = dict(doc)
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


class AdminDatabase:
    """Handle on the shared admin database."""

    def __init__(self, url: str, name: str, client_factory: ClientFactory = MongoClient):
        self.url = url
        self.name = name
        self.client_factory = client_factory
        self.client: Optional[MongoClient] = None
        self.db: Optional[Database] = None

    def open(self) -> Database:
        if self.db is None:
            self.client = self.client_factory(self.url)
            self.db = self.client[self.name]
            logger.info("Connected to admin database %s", self.name)
        return self.db

    def close(self):
        if self.client is not None:
            self.client.close()
            logger.info("Closed admin database %s", self.name)
        self.client = None
        self.db = None

    def ensure_indexes(self):
        db = self.open()
        db[USERS].create_index([("email", ASCENDING)], unique=True)
        db[USERS].create_index([("username", ASCENDING)], unique=True)
        db[SHOPS].create_index([("name", ASCENDING)])

    def __getitem__(self, collection: str) -> Collection:
        if self.db is None:
            raise RuntimeError("Admin database is not open")
        return self.db[collection]


@contextmanager
def tenant_database(uri: str, client_factory: ClientFactory = MongoClient, timeout_ms: int = 5000) -> Iterator[Database]:
    client = client_factory(uri, serverSelectionTimeoutMS=timeout_ms)
    try:
        yield client.get_default_database(DEFAULT_TENANT_DB)
    finally:
        client.close()
