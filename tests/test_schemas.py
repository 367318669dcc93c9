import pytest
from pydantic import ValidationError

from schemas import (
    CategoryCreate,
    ProductCreate,
    ProductUpdate,
    ShopCreate,
    ShopRecord,
    ShopUpdate,
    UserCreate,
    to_public_shop,
)


def test_user_create_rules():
    user = UserCreate(username="anna", email="anna@acme-shops.com", password="secret1")
    assert user.role == "admin"
    with pytest.raises(ValidationError):
        UserCreate(username="an", email="anna@acme-shops.com", password="secret1")
    with pytest.raises(ValidationError):
        UserCreate(username="anna", email="not-an-email", password="secret1")
    with pytest.raises(ValidationError):
        UserCreate(username="anna", email="anna@acme-shops.com", password="short")
    with pytest.raises(ValidationError):
        UserCreate(username="anna", email="anna@acme-shops.com", password="secret1", role="owner")


def test_shop_create_reads_camel_case():
    shop = ShopCreate.model_validate({"name": "A", "location": "X", "mongoUri": "mongodb://h/db", "imageUrl": ""})
    assert shop.mongo_uri == "mongodb://h/db"
    assert shop.status == "pending"
    assert shop.model_dump(by_alias=True)["mongoUri"] == "mongodb://h/db"


@pytest.mark.parametrize("missing", ["name", "location", "mongoUri"])
def test_shop_create_required_fields(missing):
    data = {"name": "A", "location": "X", "mongoUri": "mongodb://h/db"}
    data[missing] = ""
    with pytest.raises(ValidationError):
        ShopCreate.model_validate(data)


def test_shop_image_url_must_be_url():
    with pytest.raises(ValidationError, match="Must be a valid URL"):
        ShopCreate(name="A", location="X", mongo_uri="mongodb://h/db", image_url="not a url")
    assert ShopUpdate(image_url="https://cdn.acme-shops.com/a.png").image_url == "https://cdn.acme-shops.com/a.png"


def test_shop_status_is_enumerated():
    with pytest.raises(ValidationError):
        ShopUpdate(status="closed")


def test_public_shop_has_no_connection_string():
    record = ShopRecord.model_validate({"_id": "abc", "name": "A", "location": "X", "mongoUri": "mongodb://secret/db"})
    public = to_public_shop(record)
    assert public.id == "abc"
    assert "mongoUri" not in public.model_dump(by_alias=True)
    assert not hasattr(public, "mongo_uri")


def test_category_requires_description():
    with pytest.raises(ValidationError):
        CategoryCreate(name="Shirts", slug="shirts", description="")


def test_product_bounds():
    base = {"name": "Shirt", "category": "shirts", "price": 10, "description": "d"}
    ProductCreate(**base, rating=5, discount_percentage=100)
    with pytest.raises(ValidationError):
        ProductCreate(**{**base, "price": -1})
    with pytest.raises(ValidationError):
        ProductCreate(**base, rating=5.5)
    with pytest.raises(ValidationError):
        ProductCreate(**base, discount_percentage=101)
    with pytest.raises(ValidationError):
        ProductCreate(**base, review_count=-1)


def test_product_update_only_dumps_given_fields():
    update = ProductUpdate.model_validate({"inStock": False})
    assert update.model_dump(by_alias=True, exclude_unset=True) == {"inStock": False}
