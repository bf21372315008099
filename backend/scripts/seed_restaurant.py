"""
Seed tables and catalog products from a JSON file.

Seeding is idempotent: tables and products are matched by name, so running
the script twice does not create duplicates.

Usage:
    python -m scripts.seed_restaurant --file path/to/restaurant.json

File format:
    {
        "tables": [{"name": "T1", "capacity": 4}],
        "products": [
            {"name": "Burger", "price": 12.5, "default_excluded_ingredients": []}
        ]
    }

Environment:
    APP_DATABASE_URL: Database connection (default: sqlite:///ordersync.db)
"""

import argparse
import json
import logging
import os
from typing import Any, Dict

from ordersync.service import OrderService
from ordersync.storage import SQLAlchemyStorage, Storage

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_seed_file(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Seed file not found: {path}")
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def seed_restaurant(storage: Storage, data: Dict[str, Any]) -> Dict[str, int]:
    """
    Create the tables and products of data that do not exist yet.

    Returns:
        {'tables_created': int, 'products_created': int, 'skipped': int}
    """
    service = OrderService(storage)
    stats = {"tables_created": 0, "products_created": 0, "skipped": 0}

    existing_tables = {table.name for table in service.list_tables()}
    for entry in data.get("tables", []):
        if entry["name"] in existing_tables:
            stats["skipped"] += 1
            continue
        service.add_table(entry["name"], entry.get("capacity", 4))
        existing_tables.add(entry["name"])
        stats["tables_created"] += 1

    existing_products = {product.name for product in service.list_products()}
    for entry in data.get("products", []):
        if entry["name"] in existing_products:
            stats["skipped"] += 1
            continue
        service.add_product(
            entry["name"],
            float(entry["price"]),
            category_id=entry.get("category_id"),
            default_excluded_ingredients=entry.get("default_excluded_ingredients", []),
        )
        existing_products.add(entry["name"])
        stats["products_created"] += 1

    logger.info(
        f"Seeded {stats['tables_created']} tables and {stats['products_created']} products "
        f"({stats['skipped']} already present)"
    )
    return stats


def main():
    parser = argparse.ArgumentParser(description="Seed tables and products")
    parser.add_argument("--file", required=True, help="Path to the seed JSON file")
    parser.add_argument(
        "--db",
        default=os.getenv("APP_DATABASE_URL", "sqlite:///ordersync.db"),
        help="SQLAlchemy database URL",
    )
    args = parser.parse_args()

    try:
        data = load_seed_file(args.file)
        seed_restaurant(SQLAlchemyStorage(args.db), data)
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
