import logging
from datetime import datetime, timezone
from typing import List, Optional, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import (
    CATEGORIES,
    PRODUCTS,
    SHOPS,
    USERS,
    AdminDatabase,
    ClientFactory,
    oid_to_str,
    tenant_database,
    to_object_id,
)
from schemas import (
    Category,
    CategoryCreate,
    CategoryUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
    Shop,
    ShopCreate,
    ShopRecord,
    ShopStatus,
    ShopUpdate,
    UserCreate,
    UserRecord,
    to_public_shop,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class ConflictError(Exception):
    """A unique field (username, email) is already taken."""


def _load(model: Type[M], doc) -> Optional[M]:
    if not doc:
        return None
    return model.model_validate(oid_to_str(doc))


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Storage:
    """
    Data access for the admin database and for every shop database.

    Lookups return None (deletes return False) when nothing matches. Database
    failures are not caught here and surface as pymongo errors.
    """

    def __init__(self, admin: AdminDatabase, client_factory: ClientFactory = MongoClient, timeout_ms: int = 5000):
        self.admin = admin
        self.client_factory = client_factory
        self.timeout_ms = timeout_ms

    def _tenant(self, uri: str):
        return tenant_database(uri, self.client_factory, self.timeout_ms)

    # Users
    def get_user(self, user_id: str) -> Optional[UserRecord]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return _load(UserRecord, self.admin[USERS].find_one({"_id": oid}))

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        return _load(UserRecord, self.admin[USERS].find_one({"email": email}))

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        return _load(UserRecord, self.admin[USERS].find_one({"username": username}))

    def create_user(self, data: UserCreate) -> UserRecord:
        """Insert a user. The password in data must already be hashed."""
        doc = {**data.model_dump(by_alias=True), "createdAt": _now()}
        try:
            self.admin[USERS].insert_one(doc)
        except DuplicateKeyError as e:
            raise ConflictError("Username or email already exists") from e
        return _load(UserRecord, doc)

    # Shops
    def _load_shop(self, doc) -> Optional[ShopRecord]:
        try:
            return _load(ShopRecord, doc)
        except ValidationError as e:
            logger.error("Skipping malformed shop record %s: %d invalid field(s)", doc.get("_id"), e.error_count())
            return None

    def get_shops(self) -> List[Shop]:
        records = (self._load_shop(doc) for doc in self.admin[SHOPS].find())
        return [to_public_shop(record) for record in records if record]

    def get_shop(self, shop_id: str) -> Optional[Shop]:
        record = self.get_shop_internal(shop_id)
        return to_public_shop(record) if record else None

    def get_shop_internal(self, shop_id: str) -> Optional[ShopRecord]:
        """Full record, connection string included. Only for routing shop database calls."""
        oid = to_object_id(shop_id)
        if oid is None:
            return None
        return self._load_shop(self.admin[SHOPS].find_one({"_id": oid}))

    def create_shop(self, data: ShopCreate, status: Optional[ShopStatus] = None) -> Shop:
        now = _now()
        doc = data.model_dump(by_alias=True, exclude_none=True)
        if status:
            doc["status"] = status
        doc.update({"createdAt": now, "updatedAt": now})
        self.admin[SHOPS].insert_one(doc)
        logger.info("Created shop %s (%s)", doc["name"], doc["_id"])
        return to_public_shop(_load(ShopRecord, doc))

    def update_shop(self, shop_id: str, data: ShopUpdate) -> Optional[Shop]:
        oid = to_object_id(shop_id)
        if oid is None:
            return None
        changes = {**data.model_dump(by_alias=True, exclude_unset=True, exclude_none=True), "updatedAt": _now()}
        doc = self.admin[SHOPS].find_one_and_update(
            {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        record = self._load_shop(doc)
        return to_public_shop(record) if record else None

    def delete_shop(self, shop_id: str) -> bool:
        # the shop database itself (categories, products) is left untouched
        oid = to_object_id(shop_id)
        if oid is None:
            return False
        deleted = self.admin[SHOPS].delete_one({"_id": oid}).deleted_count > 0
        if deleted:
            logger.info("Deleted shop %s", shop_id)
        return deleted

    # Shop categories
    def get_shop_categories(self, uri: str) -> List[Category]:
        with self._tenant(uri) as db:
            return [_load(Category, doc) for doc in db[CATEGORIES].find()]

    def get_shop_category(self, uri: str, category_id: str) -> Optional[Category]:
        oid = to_object_id(category_id)
        if oid is None:
            return None
        with self._tenant(uri) as db:
            return _load(Category, db[CATEGORIES].find_one({"_id": oid}))

    def create_shop_category(self, uri: str, data: CategoryCreate) -> Category:
        now = _now()
        doc = {**data.model_dump(by_alias=True, exclude_none=True), "createdAt": now, "updatedAt": now}
        with self._tenant(uri) as db:
            db[CATEGORIES].insert_one(doc)
        return _load(Category, doc)

    def update_shop_category(self, uri: str, category_id: str, data: CategoryUpdate) -> Optional[Category]:
        oid = to_object_id(category_id)
        if oid is None:
            return None
        changes = {**data.model_dump(by_alias=True, exclude_unset=True, exclude_none=True), "updatedAt": _now()}
        with self._tenant(uri) as db:
            doc = db[CATEGORIES].find_one_and_update(
                {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        return _load(Category, doc)

    def delete_shop_category(self, uri: str, category_id: str) -> bool:
        oid = to_object_id(category_id)
        if oid is None:
            return False
        with self._tenant(uri) as db:
            return db[CATEGORIES].delete_one({"_id": oid}).deleted_count > 0

    # Shop products
    def get_shop_products(self, uri: str, category_slug: Optional[str] = None) -> List[Product]:
        filt = {"category": category_slug} if category_slug else {}
        with self._tenant(uri) as db:
            return [_load(Product, doc) for doc in db[PRODUCTS].find(filt)]

    def get_shop_product(self, uri: str, product_id: str) -> Optional[Product]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        with self._tenant(uri) as db:
            return _load(Product, db[PRODUCTS].find_one({"_id": oid}))

    def create_shop_product(self, uri: str, data: ProductCreate) -> Product:
        now = _now()
        doc = {**data.model_dump(by_alias=True, exclude_none=True), "createdAt": now, "updatedAt": now}
        with self._tenant(uri) as db:
            db[PRODUCTS].insert_one(doc)
        return _load(Product, doc)

    def update_shop_product(self, uri: str, product_id: str, data: ProductUpdate) -> Optional[Product]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        changes = {**data.model_dump(by_alias=True, exclude_unset=True, exclude_none=True), "updatedAt": _now()}
        with self._tenant(uri) as db:
            doc = db[PRODUCTS].find_one_and_update(
                {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        return _load(Product, doc)

    def delete_shop_product(self, uri: str, product_id: str) -> bool:
        oid = to_object_id(product_id)
        if oid is None:
            return False
        with self._tenant(uri) as db:
            return db[PRODUCTS].delete_one({"_id": oid}).deleted_count > 0

    def list_shop_collections(self, uri: str) -> List[str]:
        with self._tenant(uri) as db:
            return sorted(db.list_collection_names())

    def count_shop_products(self, uri: str) -> int:
        with self._tenant(uri) as db:
            return db[PRODUCTS].count_documents({})

    def test_connection(self, uri: str) -> bool:
        if not uri:
            return False
        try:
            with self._tenant(uri) as db:
                db.client.admin.command("ping")
            return True
        except (PyMongoError, ValueError) as e:
            logger.warning("Connection test failed: %s", type(e).__name__)
            return False


def get_storage(request: Request) -> Storage:
    return request.app.state.storage
