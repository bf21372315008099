"""
Abstract order API consumed by the sync engine.

Implementations can call the order service in-process, over HTTP, or be test
doubles. All methods are coroutines; failures are raised as OrderApiError
(or one of its subclasses).
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ordersync.models import Order, OrderItemsUpdate, PaymentMethod
from ordersync.notifications import NotificationHub


class OrderApi(ABC):
    """Contract of the remote order API."""

    notifications: NotificationHub

    @abstractmethod
    async def create_or_get_order(self, table_id: str) -> Order:
        """Return the open order of a table, creating it if the table has none."""
        ...

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[Order]:
        """Return the order, or None if it does not exist."""
        ...

    @abstractmethod
    async def update_order(
        self, order_id: str, update: OrderItemsUpdate, notify: bool = True
    ) -> Order:
        """
        Write the full item list of an order.

        The server deletes update.removed_item_ids, assigns persisted IDs to
        items that lack one, recomputes the total and returns the order with
        items in request order. notify=False suppresses the staff
        notification but still publishes orders_updated.
        """
        ...

    @abstractmethod
    async def send_to_kitchen(self, order_id: str, item_ids: List[str]) -> Order:
        """Mark the given pending items (all pending when empty) as sent."""
        ...

    @abstractmethod
    async def mark_ready(self, order_id: str) -> Order:
        ...

    @abstractmethod
    async def mark_served(self, order_id: str) -> Order:
        ...

    @abstractmethod
    async def finalize(
        self,
        order_id: str,
        payment_method: PaymentMethod,
        receipt_url: Optional[str] = None,
    ) -> Order:
        """Record payment and release the table."""
        ...

    @abstractmethod
    async def cancel_unsent_order(self, order_id: str) -> None:
        """Delete an order nothing of which reached the kitchen. No-op otherwise."""
        ...

    async def aclose(self) -> None:
        """Release transport resources. Default: nothing to release."""
        return None
