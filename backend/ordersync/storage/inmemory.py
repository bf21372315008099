"""
In-memory storage implementation.

Keeps records in dictionaries keyed by ID. Records are deep-copied on the way
in and out so callers never share mutable state with the store.
"""

import copy
from typing import Any, Dict, List, Optional

from .base import Storage


class InMemoryStorage(Storage):
    """In-memory storage using dictionaries."""

    def __init__(self):
        self._tables: Dict[str, Dict[str, Any]] = {}
        self._orders: Dict[str, Dict[str, Any]] = {}
        self._products: Dict[str, Dict[str, Any]] = {}

    def get_table(self, table_id: str) -> Optional[Dict[str, Any]]:
        table = self._tables.get(table_id)
        return copy.deepcopy(table) if table is not None else None

    def list_tables(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(t) for t in sorted(self._tables.values(), key=lambda t: t["name"])]

    def save_table(self, table: Dict[str, Any]) -> None:
        self._tables[table["id"]] = copy.deepcopy(table)

    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order is not None else None

    def save_order(self, order: Dict[str, Any]) -> None:
        self._orders[order["id"]] = copy.deepcopy(order)

    def delete_order(self, order_id: str) -> bool:
        return self._orders.pop(order_id, None) is not None

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        product = self._products.get(product_id)
        return copy.deepcopy(product) if product is not None else None

    def list_products(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(p) for p in sorted(self._products.values(), key=lambda p: p["name"])]

    def save_product(self, product: Dict[str, Any]) -> None:
        self._products[product["id"]] = copy.deepcopy(product)

    def clear(self) -> None:
        """Clear all state."""
        self._tables.clear()
        self._orders.clear()
        self._products.clear()
