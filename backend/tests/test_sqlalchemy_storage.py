"""
Tests for SQLAlchemyStorage.

Tests persistence across storage instances and the service running on top
of a SQLite database.
"""

import pytest

from ordersync.models import ItemStatus, LineItem, OrderStatus, PaymentMethod
from ordersync.service import OrderService
from ordersync.storage import SQLAlchemyStorage


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path}/orders.db"


def _line(product, quantity=1, item_id="tmp-1"):
    return LineItem(
        id=item_id,
        product_id=product.id,
        product_name=product.name,
        unit_price=product.price,
        quantity=quantity,
    )


class TestSQLAlchemyPersistence:

    def test_data_survives_new_instance(self, db_url):
        service = OrderService(SQLAlchemyStorage(db_url))
        table = service.add_table("T7", capacity=6)
        soup = service.add_product("Soup", 6.0, default_excluded_ingredients=["cream"])
        order = service.create_or_get_order(table.id)
        service.update_order(order.id, [_line(soup, quantity=2)])

        reopened = OrderService(SQLAlchemyStorage(db_url))
        stored = reopened.get_order(order.id)
        assert stored.total == 12.0
        assert stored.items[0].quantity == 2
        assert reopened.get_table(table.id).order_id == order.id
        assert reopened.list_products()[0].default_excluded_ingredients == ["cream"]

    def test_sent_items_keep_timestamps(self, db_url):
        service = OrderService(SQLAlchemyStorage(db_url))
        table = service.add_table("T1")
        soup = service.add_product("Soup", 6.0)
        order = service.create_or_get_order(table.id)
        service.update_order(order.id, [_line(soup)])
        sent = service.send_to_kitchen(order.id)

        stored = OrderService(SQLAlchemyStorage(db_url)).get_order(order.id)
        assert stored.items[0].status == ItemStatus.SENT
        assert stored.items[0].sent_at == sent.items[0].sent_at
        assert stored.sent_to_kitchen_at.tzinfo is not None

    def test_finalized_order_is_kept(self, db_url):
        service = OrderService(SQLAlchemyStorage(db_url))
        table = service.add_table("T1")
        order = service.create_or_get_order(table.id)
        service.finalize(order.id, PaymentMethod.TRANSFER, "https://receipts.example/1.png")

        stored = OrderService(SQLAlchemyStorage(db_url)).get_order(order.id)
        assert stored.status == OrderStatus.FINALIZED
        assert stored.payment_method == PaymentMethod.TRANSFER
        assert stored.payment_receipt_url == "https://receipts.example/1.png"
