"""In-process OrderApi backed directly by an OrderService."""

import asyncio
from typing import List, Optional

from ordersync.client.base import OrderApi
from ordersync.models import Order, OrderItemsUpdate, PaymentMethod
from ordersync.service import OrderService


class LocalOrderApi(OrderApi):
    """
    Calls the service in the same process.

    latency (seconds) is slept before every call to mimic a network round
    trip. Returned orders are deep copies, as they would be after a trip over
    the wire. Shares the service's notification hub.
    """

    def __init__(self, service: OrderService, latency: float = 0.0):
        self.service = service
        self.latency = latency
        self.notifications = service.notifications

    async def _round_trip(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)

    async def create_or_get_order(self, table_id: str) -> Order:
        await self._round_trip()
        return self.service.create_or_get_order(table_id).model_copy(deep=True)

    async def get_order(self, order_id: str) -> Optional[Order]:
        await self._round_trip()
        order = self.service.get_order(order_id)
        return order.model_copy(deep=True) if order is not None else None

    async def update_order(self, order_id: str, update: OrderItemsUpdate, notify: bool = True) -> Order:
        await self._round_trip()
        order = self.service.update_order(
            order_id, update.items, update.removed_item_ids, notify=notify
        )
        return order.model_copy(deep=True)

    async def send_to_kitchen(self, order_id: str, item_ids: List[str]) -> Order:
        await self._round_trip()
        return self.service.send_to_kitchen(order_id, item_ids).model_copy(deep=True)

    async def mark_ready(self, order_id: str) -> Order:
        await self._round_trip()
        return self.service.mark_ready(order_id).model_copy(deep=True)

    async def mark_served(self, order_id: str) -> Order:
        await self._round_trip()
        return self.service.mark_served(order_id).model_copy(deep=True)

    async def finalize(
        self,
        order_id: str,
        payment_method: PaymentMethod,
        receipt_url: Optional[str] = None,
    ) -> Order:
        await self._round_trip()
        return self.service.finalize(order_id, payment_method, receipt_url).model_copy(deep=True)

    async def cancel_unsent_order(self, order_id: str) -> None:
        await self._round_trip()
        self.service.cancel_unsent_order(order_id)
