"""
Abstract Storage interface for the order service.

Defines the contract for table, order and product persistence. Records are
plain dicts shaped like the pydantic models in ordersync.models (an order
dict carries its "items" list in display order), so implementations can be
in-memory, database-backed, or other backends.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class Storage(ABC):
    """Abstract base class for storage implementations."""

    @abstractmethod
    def get_table(self, table_id: str) -> Optional[Dict[str, Any]]:
        """Get a table record, or None if the table does not exist."""
        ...

    @abstractmethod
    def list_tables(self) -> List[Dict[str, Any]]:
        """List all tables, sorted by name."""
        ...

    @abstractmethod
    def save_table(self, table: Dict[str, Any]) -> None:
        """Insert or replace a table record."""
        ...

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        """
        Get an order with its items.

        Returns None if not found.
        """
        ...

    @abstractmethod
    def save_order(self, order: Dict[str, Any]) -> None:
        """
        Insert or replace an order.

        The stored item list becomes exactly order["items"], in that order.
        """
        ...

    @abstractmethod
    def delete_order(self, order_id: str) -> bool:
        """
        Delete an order and its items.

        Returns True if the order existed, False otherwise.
        """
        ...

    @abstractmethod
    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def list_products(self) -> List[Dict[str, Any]]:
        """List all catalog products, sorted by name."""
        ...

    @abstractmethod
    def save_product(self, product: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        """Clear all state (tables, orders and products)."""
        ...
