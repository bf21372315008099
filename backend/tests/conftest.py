import sys
import os
from typing import List, Optional

import pytest
import pytest_asyncio
import httpx
from httpx import ASGITransport

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ordersync.client.local import LocalOrderApi
from ordersync.config import Settings
from ordersync.errors import OrderApiError
from ordersync.main import create_app
from ordersync.models import Order, OrderItemsUpdate
from ordersync.service import OrderService
from ordersync.storage import InMemoryStorage
from ordersync.sync import OrderSyncController, TempIdGenerator

# Short debounce so timer-driven tests stay fast.
FAST_SETTINGS = Settings(sync_debounce_ms=20, sync_drain_max_attempts=3)


class RecordingOrderApi(LocalOrderApi):
    """
    LocalOrderApi that records calls and can misbehave on demand.

    fail_updates: number of upcoming update_order calls that raise OrderApiError
    assign_ids:   when False, update_order echoes the request without persisting it
    """

    def __init__(self, service: OrderService, latency: float = 0.0):
        super().__init__(service, latency)
        self.calls: List[str] = []
        self.updates: List[OrderItemsUpdate] = []
        self.kitchen_requests: List[List[str]] = []
        self.fail_updates = 0
        self.assign_ids = True
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def update_calls(self) -> int:
        return len(self.updates)

    async def create_or_get_order(self, table_id: str) -> Order:
        self.calls.append("create_or_get_order")
        return await super().create_or_get_order(table_id)

    async def get_order(self, order_id: str) -> Optional[Order]:
        self.calls.append("get_order")
        return await super().get_order(order_id)

    async def update_order(self, order_id: str, update: OrderItemsUpdate, notify: bool = True) -> Order:
        self.calls.append("update_order")
        self.updates.append(update)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.fail_updates > 0:
                self.fail_updates -= 1
                await self._round_trip()
                raise OrderApiError("simulated network failure", status_code=503)
            if not self.assign_ids:
                await self._round_trip()
                return self.service.get_order(order_id).with_items(update.items)
            return await super().update_order(order_id, update, notify=notify)
        finally:
            self.in_flight -= 1

    async def send_to_kitchen(self, order_id: str, item_ids: List[str]) -> Order:
        self.calls.append("send_to_kitchen")
        self.kitchen_requests.append(list(item_ids))
        return await super().send_to_kitchen(order_id, item_ids)

    async def cancel_unsent_order(self, order_id: str) -> None:
        self.calls.append("cancel_unsent_order")
        await super().cancel_unsent_order(order_id)


@pytest.fixture
def storage():
    """Fresh in-memory storage per test."""
    return InMemoryStorage()


@pytest.fixture
def service(storage):
    return OrderService(storage)


@pytest.fixture
def table(service):
    return service.add_table("T1", capacity=4)


@pytest.fixture
def burger(service):
    return service.add_product("Burger", 12.5)


@pytest.fixture
def fries(service):
    return service.add_product("Fries", 4.0)


@pytest.fixture
def api(service):
    return RecordingOrderApi(service)


@pytest.fixture
def slow_api(service):
    """Same as api, but every call takes 50ms."""
    return RecordingOrderApi(service, latency=0.05)


@pytest.fixture
def navigation():
    """Records on_navigate and on_error callbacks."""
    class Recorder:
        def __init__(self):
            self.navigations = 0
            self.errors = []

        def navigate(self):
            self.navigations += 1

        def error(self, message, exc):
            self.errors.append((message, exc))

    return Recorder()


@pytest_asyncio.fixture
async def make_controller(api, table, navigation):
    """Factory for controllers on the test table; closes them after the test."""
    created = []

    def factory(**kwargs):
        kwargs.setdefault("settings", FAST_SETTINGS)
        kwargs.setdefault("id_generator", TempIdGenerator(use_random=False))
        kwargs.setdefault("on_navigate", navigation.navigate)
        kwargs.setdefault("on_error", navigation.error)
        controller = OrderSyncController(
            kwargs.pop("api", api), kwargs.pop("table_id", table.id), **kwargs
        )
        created.append(controller)
        return controller

    yield factory

    for controller in created:
        await controller.close()


@pytest.fixture
def app(storage):
    """FastAPI app over the test storage."""
    return create_app(settings=Settings(), storage=storage)


@pytest_asyncio.fixture
async def async_client(app):
    """Create async HTTP client for testing."""
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
