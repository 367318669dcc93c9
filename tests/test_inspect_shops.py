import io

import pytest

from conftest import BAD_URI, SHOP_A_URI
from inspect_shops import inspect_shops, main
from schemas import ProductCreate, ShopCreate


def test_inspect_shops_output(storage):
    storage.create_shop(ShopCreate(name="Shop A", location="Berlin", mongo_uri=SHOP_A_URI), status="active")
    storage.create_shop(ShopCreate(name="Down", location="Rome", mongo_uri=BAD_URI))
    storage.create_shop_product(
        SHOP_A_URI, ProductCreate(name="Linen Shirt", category="shirts", price=49.9, description="Light")
    )

    out = io.StringIO()
    inspect_shops(storage, limit=5, out=out)
    text = out.getvalue()

    assert "Found 2 shop(s)" in text
    assert "=== Shop: Shop A ===" in text
    assert "MongoDB URI: [CONFIGURED]" in text
    assert "  - products" in text
    assert "Total products: 1" in text
    assert '"name": "Linen Shirt"' in text
    assert SHOP_A_URI not in text
    assert BAD_URI not in text


def test_inspect_shops_limit(storage):
    for name in ("A", "B", "C"):
        storage.create_shop(ShopCreate(name=name, location="X", mongo_uri=SHOP_A_URI))
    out = io.StringIO()
    inspect_shops(storage, limit=2, out=out)
    assert "Found 2 shop(s)" in out.getvalue()


def test_main_rejects_non_numeric_limit(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["abc"])
    assert exc.value.code == 2
    assert "invalid int value" in capsys.readouterr().err
