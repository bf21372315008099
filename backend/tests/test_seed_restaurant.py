"""
Tests for seeding tables and products from a JSON file.
"""

import json

import pytest

from ordersync.storage import SQLAlchemyStorage
from scripts.seed_restaurant import load_seed_file, seed_restaurant

SEED = {
    "tables": [{"name": "T1", "capacity": 2}, {"name": "T2"}],
    "products": [
        {"name": "Burger", "price": 12.5, "default_excluded_ingredients": ["pickles"]},
        {"name": "Fries", "price": "4.0", "category_id": "sides"},
    ],
}


@pytest.fixture
def seed_file(tmp_path):
    path = tmp_path / "restaurant.json"
    path.write_text(json.dumps(SEED), encoding="utf-8")
    return str(path)


def test_seed_creates_tables_and_products(storage, seed_file):
    stats = seed_restaurant(storage, load_seed_file(seed_file))
    assert stats == {"tables_created": 2, "products_created": 2, "skipped": 0}
    assert [table["capacity"] for table in storage.list_tables()] == [2, 4]
    products = storage.list_products()
    assert products[0]["default_excluded_ingredients"] == ["pickles"]
    assert products[1]["price"] == 4.0


def test_seed_is_idempotent(tmp_path, seed_file):
    storage = SQLAlchemyStorage(f"sqlite:///{tmp_path}/seed.db")
    data = load_seed_file(seed_file)
    seed_restaurant(storage, data)
    stats = seed_restaurant(storage, data)
    assert stats == {"tables_created": 0, "products_created": 0, "skipped": 4}
    assert len(storage.list_tables()) == 2


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_seed_file(str(tmp_path / "nope.json"))
