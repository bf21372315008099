"""
OrderApi over HTTP, talking to the FastAPI app in ordersync.main.

Refresh events arrive through the server-sent event stream at /events;
listen_for_updates() republishes them on the client's own NotificationHub so
an OrderSyncController can subscribe exactly as it does in-process.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ordersync.client.base import OrderApi
from ordersync.config import get_settings
from ordersync.errors import OrderApiError, OrderNotFoundError, TableNotFoundError
from ordersync.models import Order, OrderItemsUpdate, PaymentMethod, Product
from ordersync.notifications import NotificationHub

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)


class HttpOrderApi(OrderApi):
    """
    httpx-based client.

    Pass client to reuse a configured httpx.AsyncClient (tests pass one bound
    to an ASGITransport); otherwise one is created and closed by aclose().
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        if base_url is None or timeout is None:
            settings = get_settings()
            base_url = base_url or settings.order_api_url
            timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.notifications = NotificationHub()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        not_found: Optional[OrderApiError] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise OrderApiError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404 and not_found is not None:
            raise not_found
        if response.is_error:
            raise OrderApiError(
                f"{method} {path} returned {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _order(response: httpx.Response) -> Order:
        return Order.model_validate(response.json())

    async def create_or_get_order(self, table_id: str) -> Order:
        response = await self._request(
            "POST", f"/api/tables/{table_id}/order", not_found=TableNotFoundError(table_id)
        )
        return self._order(response)

    async def get_order(self, order_id: str) -> Optional[Order]:
        try:
            response = await self._request(
                "GET", f"/api/orders/{order_id}", not_found=OrderNotFoundError(order_id)
            )
        except OrderNotFoundError:
            return None
        return self._order(response)

    async def update_order(self, order_id: str, update: OrderItemsUpdate, notify: bool = True) -> Order:
        response = await self._request(
            "PUT",
            f"/api/orders/{order_id}/items",
            json=update.model_dump(mode="json"),
            params={"notify": "true" if notify else "false"},
            not_found=OrderNotFoundError(order_id),
        )
        return self._order(response)

    async def send_to_kitchen(self, order_id: str, item_ids: List[str]) -> Order:
        response = await self._request(
            "POST",
            f"/api/orders/{order_id}/kitchen",
            json={"item_ids": list(item_ids)},
            not_found=OrderNotFoundError(order_id),
        )
        return self._order(response)

    async def mark_ready(self, order_id: str) -> Order:
        response = await self._request(
            "POST", f"/api/orders/{order_id}/ready", not_found=OrderNotFoundError(order_id)
        )
        return self._order(response)

    async def mark_served(self, order_id: str) -> Order:
        response = await self._request(
            "POST", f"/api/orders/{order_id}/served", not_found=OrderNotFoundError(order_id)
        )
        return self._order(response)

    async def finalize(
        self,
        order_id: str,
        payment_method: PaymentMethod,
        receipt_url: Optional[str] = None,
    ) -> Order:
        response = await self._request(
            "POST",
            f"/api/orders/{order_id}/finalize",
            json={"payment_method": payment_method.value, "receipt_url": receipt_url},
            not_found=OrderNotFoundError(order_id),
        )
        return self._order(response)

    async def cancel_unsent_order(self, order_id: str) -> None:
        await self._request("DELETE", f"/api/orders/{order_id}")

    async def list_products(self) -> List[Product]:
        """Catalog lookup for clients that render a product grid."""
        response = await self._request("GET", "/api/products")
        return [Product.model_validate(entry) for entry in response.json()]

    async def listen_for_updates(self) -> None:
        """
        Consume the /events stream and republish every event locally.

        Returns when the server closes the stream; cancel the task to stop
        listening earlier.
        """
        url = f"{self.base_url}/events"
        try:
            async with self._client.stream("GET", url, timeout=None) as response:
                if response.is_error:
                    raise OrderApiError(
                        f"GET /events returned {response.status_code}", status_code=response.status_code
                    )
                event: Optional[str] = None
                async for line in response.aiter_lines():
                    if line.startswith("event:"):
                        event = line[len("event:"):].strip()
                    elif line == "" and event:
                        self.notifications.publish(event)
                        event = None
                if event:
                    self.notifications.publish(event)
        except httpx.HTTPError as exc:
            raise OrderApiError(f"Event stream failed: {exc}") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
