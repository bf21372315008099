"""
Tests for HttpOrderApi against the FastAPI app and against canned responses.
"""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from ordersync.client.http import HttpOrderApi
from ordersync.config import Settings
from ordersync.errors import OrderApiError, TableNotFoundError
from ordersync.models import ItemStatus, LineItem, OrderItemsUpdate, PaymentMethod
from ordersync.sync import OrderSyncController, TempIdGenerator
from ordersync.sync.ids import is_persisted_id


@pytest_asyncio.fixture
async def http_api(app):
    client = httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    api = HttpOrderApi("http://test", client=client)
    yield api
    await client.aclose()


def _mock_api(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpOrderApi("http://pos.local", client=client)


class TestHttpOrderApi:

    @pytest.mark.asyncio
    async def test_order_round_trip(self, http_api, table, burger):
        order = await http_api.create_or_get_order(table.id)
        update = OrderItemsUpdate(items=[
            LineItem(id="tmp-1", product_id=burger.id, product_name=burger.name, unit_price=burger.price, quantity=2)
        ])
        written = await http_api.update_order(order.id, update, notify=False)
        assert is_persisted_id(written.items[0].id)
        assert written.total == 25.0

        fetched = await http_api.get_order(order.id)
        assert fetched == written

        sent = await http_api.send_to_kitchen(order.id, [written.items[0].id])
        assert sent.items[0].status == ItemStatus.SENT

        await http_api.mark_ready(order.id)
        await http_api.mark_served(order.id)
        final = await http_api.finalize(order.id, PaymentMethod.CASH)
        assert final.payment_method == PaymentMethod.CASH

    @pytest.mark.asyncio
    async def test_missing_order_is_none(self, http_api):
        assert await http_api.get_order("missing") is None

    @pytest.mark.asyncio
    async def test_unknown_table_raises(self, http_api):
        with pytest.raises(TableNotFoundError):
            await http_api.create_or_get_order("missing")

    @pytest.mark.asyncio
    async def test_conflict_is_reported_with_status(self, http_api, table):
        order = await http_api.create_or_get_order(table.id)
        await http_api.finalize(order.id, PaymentMethod.CARD)
        with pytest.raises(OrderApiError) as excinfo:
            await http_api.update_order(order.id, OrderItemsUpdate())
        assert excinfo.value.status_code == 409

    @pytest.mark.asyncio
    async def test_list_products(self, http_api, burger, fries):
        products = await http_api.list_products()
        assert [product.name for product in products] == ["Burger", "Fries"]

    @pytest.mark.asyncio
    async def test_connection_error_becomes_api_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        api = _mock_api(handler)
        with pytest.raises(OrderApiError) as excinfo:
            await api.get_order("o1")
        assert excinfo.value.status_code is None
        await api.aclose()

    @pytest.mark.asyncio
    async def test_server_error_carries_detail(self):
        def handler(request):
            return httpx.Response(500, json={"detail": "database locked"})

        api = _mock_api(handler)
        with pytest.raises(OrderApiError) as excinfo:
            await api.mark_served("o1")
        assert excinfo.value.status_code == 500
        assert "database locked" in str(excinfo.value)


class TestEventStream:

    @pytest.mark.asyncio
    async def test_events_are_republished(self):
        body = (
            "event: orders_updated\ndata: {}\n\n"
            ": keep-alive\n\n"
            "event: notifications_updated\ndata: {}\n\n"
            "event: orders_updated\ndata: {}\n"
        )

        def handler(request):
            assert request.url.path == "/events"
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        api = _mock_api(handler)
        received = []
        api.notifications.subscribe("orders_updated", lambda: received.append("orders_updated"))
        api.notifications.subscribe("notifications_updated", lambda: received.append("notifications_updated"))

        await api.listen_for_updates()
        assert received == ["orders_updated", "notifications_updated", "orders_updated"]

    @pytest.mark.asyncio
    async def test_stream_error_status(self):
        api = _mock_api(lambda request: httpx.Response(503))
        with pytest.raises(OrderApiError) as excinfo:
            await api.listen_for_updates()
        assert excinfo.value.status_code == 503


class TestControllerOverHttp:

    @pytest.mark.asyncio
    async def test_edit_and_send(self, http_api, service, table, burger):
        navigations = []
        controller = OrderSyncController(
            http_api,
            table.id,
            settings=Settings(sync_debounce_ms=10),
            id_generator=TempIdGenerator(use_random=False),
            on_navigate=lambda: navigations.append(1),
        )
        order = await controller.load()
        controller.add_product(burger)
        controller.add_product(burger)

        sent = await controller.send_to_kitchen()
        await controller.close()

        assert sent is not None
        stored = service.get_order(order.id)
        assert [(item.quantity, item.status) for item in stored.items] == [(2, ItemStatus.SENT)]
        assert navigations == [1]
