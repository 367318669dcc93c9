"""
Print what the shop databases actually contain.

Usage: python inspect_shops.py [LIMIT]

Reads the admin database from DATABASE_URL / DATABASE_NAME, lists up to LIMIT
shops (default 5) and, for each, the collections of its database, the number
of products and a few sample products. Connection strings are never printed.
"""
import argparse
import json
import logging
import sys

from pymongo.errors import PyMongoError

from config import Settings, configure_logging
from database import AdminDatabase
from storage import Storage

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 3


def inspect_shops(storage: Storage, limit: int = 5, out=None):
    out = out or sys.stdout
    shops = storage.get_shops()[:limit]
    print(f"Found {len(shops)} shop(s)", file=out)

    for shop in shops:
        record = storage.get_shop_internal(shop.id)
        print(f"\n=== Shop: {shop.name} ===", file=out)
        print(f"ID: {shop.id}", file=out)
        print(f"Location: {shop.location}", file=out)
        print(f"Status: {shop.status}", file=out)
        print(f"MongoDB URI: {'[CONFIGURED]' if record and record.mongo_uri else '[NOT SET]'}", file=out)
        if not record or not record.mongo_uri:
            continue
        try:
            collections = storage.list_shop_collections(record.mongo_uri)
            print("Collections:", file=out)
            for name in collections:
                print(f"  - {name}", file=out)
            print(f"Total products: {storage.count_shop_products(record.mongo_uri)}", file=out)
            for index, product in enumerate(storage.get_shop_products(record.mongo_uri)[:SAMPLE_SIZE], 1):
                print(f"Product {index}:", file=out)
                print(json.dumps(product.model_dump(mode="json", by_alias=True), indent=2), file=out)
        except PyMongoError as e:
            logger.error("Error connecting to database of shop %s: %s", shop.name, type(e).__name__)


def build_parser():
    parser = argparse.ArgumentParser(description="Print what the shop databases contain.")
    parser.add_argument("limit", nargs="?", type=int, default=5, help="number of shops to inspect (default 5)")
    return parser


def main(argv=None):
    limit = build_parser().parse_args(argv).limit
    settings = Settings.from_env()
    configure_logging(settings)
    admin = AdminDatabase(settings.database_url, settings.database_name)
    storage = Storage(admin, timeout_ms=settings.tenant_timeout_ms)
    try:
        admin.open()
        inspect_shops(storage, limit)
    except PyMongoError as e:
        logger.error("Admin database error: %s", e)
        return 1
    finally:
        admin.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
