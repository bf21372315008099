"""
Order service: the server side of the order API.

Owns tables, orders and the product catalog through a Storage backend and
publishes ORDERS_UPDATED on every mutation so connected screens refetch.
"""

import logging
from typing import Iterable, List, Optional, Sequence
from uuid import uuid4

from ordersync.errors import OrderNotFoundError, OrderStateError, TableNotFoundError
from ordersync.models import (
    ItemStatus,
    KitchenStatus,
    LineItem,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Product,
    Table,
    TableStatus,
    compute_total,
)
from ordersync.notifications import NOTIFICATIONS_UPDATED, ORDERS_UPDATED, NotificationHub
from ordersync.storage.base import Storage
from ordersync.sync.ids import is_persisted_id
from ordersync.utils.time_utils import now_utc

logger = logging.getLogger(__name__)


class OrderService:
    """Business rules of table orders on top of a Storage backend."""

    def __init__(self, storage: Storage, notifications: Optional[NotificationHub] = None):
        self.storage = storage
        self.notifications = notifications or NotificationHub()

    # ---- helpers ----

    def _publish(self, notify: bool = True) -> None:
        self.notifications.publish(ORDERS_UPDATED)
        if notify:
            self.notifications.publish(NOTIFICATIONS_UPDATED)

    def _require_table(self, table_id: str) -> Table:
        data = self.storage.get_table(table_id)
        if data is None:
            raise TableNotFoundError(table_id)
        return Table.model_validate(data)

    def _require_order(self, order_id: str) -> Order:
        data = self.storage.get_order(order_id)
        if data is None:
            raise OrderNotFoundError(order_id)
        return Order.model_validate(data)

    def _save_order(self, order: Order) -> Order:
        self.storage.save_order(order.model_dump())
        return order

    def _update_table(self, table_id: Optional[str], **changes) -> None:
        if not table_id:
            return
        data = self.storage.get_table(table_id)
        if data is None:
            logger.warning("Order references missing table %s", table_id)
            return
        table = Table.model_validate(data).model_copy(update=changes)
        self.storage.save_table(table.model_dump())

    # ---- catalog and tables ----

    def add_table(self, name: str, capacity: int = 4, table_id: Optional[str] = None) -> Table:
        table = Table(id=table_id or str(uuid4()), name=name, capacity=capacity)
        self.storage.save_table(table.model_dump())
        return table

    def list_tables(self) -> List[Table]:
        return [Table.model_validate(data) for data in self.storage.list_tables()]

    def get_table(self, table_id: str) -> Table:
        return self._require_table(table_id)

    def add_product(
        self,
        name: str,
        price: float,
        product_id: Optional[str] = None,
        category_id: Optional[str] = None,
        default_excluded_ingredients: Iterable[str] = (),
    ) -> Product:
        product = Product(
            id=product_id or str(uuid4()),
            name=name,
            price=price,
            category_id=category_id,
            default_excluded_ingredients=list(default_excluded_ingredients),
        )
        self.storage.save_product(product.model_dump())
        return product

    def list_products(self) -> List[Product]:
        return [Product.model_validate(data) for data in self.storage.list_products()]

    # ---- orders ----

    def get_order(self, order_id: str) -> Optional[Order]:
        data = self.storage.get_order(order_id)
        return Order.model_validate(data) if data is not None else None

    def create_or_get_order(self, table_id: str) -> Order:
        """Return the table's open order, opening a new one if it has none."""
        table = self._require_table(table_id)
        if table.order_id:
            existing = self.get_order(table.order_id)
            if existing is not None:
                return existing

        covers = table.covers if table.covers is not None else table.capacity
        order = Order(
            id=str(uuid4()),
            table_id=table.id,
            table_name=table.name,
            covers=covers,
            created_at=now_utc(),
        )
        self._save_order(order)
        self._update_table(table.id, order_id=order.id, covers=covers)
        logger.info("Opened order %s on table %s", order.id, table.name)
        self._publish()
        return order

    def update_order(
        self,
        order_id: str,
        items: Sequence[LineItem],
        removed_item_ids: Iterable[str] = (),
        notify: bool = True,
    ) -> Order:
        """
        Write the item list of an order.

        Persisted IDs listed in removed_item_ids are deleted. Requested items
        whose ID is a persisted ID of this order are updated in place; every
        other requested item is inserted as a new pending item under a fresh
        ID. Existing items neither requested nor removed are kept after the
        requested ones.
        """
        order = self._require_order(order_id)
        if order.status == OrderStatus.FINALIZED:
            raise OrderStateError(f"Order {order_id} is finalized")

        removed = {item_id for item_id in removed_item_ids if is_persisted_id(item_id)}
        kept = [item for item in order.items if item.id not in removed]
        kept_ids = {item.id for item in kept}

        written: List[LineItem] = []
        written_ids = set()
        for item in items:
            if is_persisted_id(item.id) and item.id in kept_ids and item.id not in written_ids:
                stored = item
            else:
                stored = item.model_copy(
                    update={"id": str(uuid4()), "status": ItemStatus.PENDING, "sent_at": None}
                )
            written_ids.add(stored.id)
            written.append(stored)

        unlisted = [item for item in kept if item.id not in written_ids]
        updated = order.with_items(written + unlisted)
        self._save_order(updated)
        logger.debug(
            "Order %s updated: %d written, %d removed, %d kept",
            order_id, len(written), len(order.items) - len(kept), len(unlisted),
        )
        self._publish(notify)
        return updated

    def send_to_kitchen(self, order_id: str, item_ids: Sequence[str] = ()) -> Order:
        """Mark pending persisted items as sent (all pending items when item_ids is empty)."""
        order = self._require_order(order_id)
        wanted = set(item_ids)
        to_send = {
            item.id
            for item in order.pending_items()
            if is_persisted_id(item.id) and (not wanted or item.id in wanted)
        }
        if not to_send:
            return order

        now = now_utc()
        items = [
            item.model_copy(update={"status": ItemStatus.SENT, "sent_at": now})
            if item.id in to_send else item
            for item in order.items
        ]
        updated = order.with_items(items).model_copy(
            update={"kitchen_status": KitchenStatus.RECEIVED, "sent_to_kitchen_at": now}
        )
        self._save_order(updated)
        self._update_table(order.table_id, status=TableStatus.IN_KITCHEN)
        logger.info("Order %s: %d item(s) sent to the kitchen", order_id, len(to_send))
        self._publish()
        return updated

    def mark_ready(self, order_id: str) -> Order:
        order = self._require_order(order_id)
        updated = order.model_copy(update={"kitchen_status": KitchenStatus.READY, "ready_at": now_utc()})
        self._save_order(updated)
        self._update_table(order.table_id, status=TableStatus.TO_SERVE)
        self._publish()
        return updated

    def mark_served(self, order_id: str) -> Order:
        order = self._require_order(order_id)
        updated = order.model_copy(update={"kitchen_status": KitchenStatus.SERVED, "served_at": now_utc()})
        self._save_order(updated)
        self._update_table(order.table_id, status=TableStatus.TO_PAY)
        self._publish()
        return updated

    def finalize(
        self,
        order_id: str,
        payment_method: PaymentMethod,
        receipt_url: Optional[str] = None,
    ) -> Order:
        """Record payment and free the table."""
        order = self._require_order(order_id)
        updated = order.model_copy(
            update={
                "status": OrderStatus.FINALIZED,
                "payment_status": PaymentStatus.PAID,
                "payment_method": payment_method,
                "payment_receipt_url": receipt_url,
                "served_at": order.served_at or now_utc(),
                "total": compute_total(order.items),
            }
        )
        self._save_order(updated)
        self._update_table(order.table_id, status=TableStatus.FREE, order_id=None, covers=None)
        logger.info("Order %s finalized (%s)", order_id, payment_method.value)
        self._publish()
        return updated

    def cancel_unsent_order(self, order_id: str) -> None:
        """Delete an order that never reached the kitchen and free its table."""
        order = self.get_order(order_id)
        if order is None:
            return
        has_been_sent = order.kitchen_status != KitchenStatus.NOT_SENT or any(
            not item.is_pending for item in order.items
        )
        if has_been_sent:
            logger.info("Order %s already reached the kitchen, not cancelling", order_id)
            return

        self.storage.delete_order(order_id)
        self._update_table(order.table_id, status=TableStatus.FREE, order_id=None, covers=None)
        logger.info("Cancelled unsent order %s", order_id)
        self._publish()
