"""
Drive a table's order screen against a running server.

Opens the table's order, adds products through the sync engine and
optionally sends them to the kitchen, logging every refresh event received
from the server.

Usage:
    python -m scripts.simulate_waiter --table <table_id> --product <product_id> [--product ...] [--send]

Environment:
    ORDER_API_URL: server base URL (default: http://localhost:8000)
"""

import argparse
import asyncio
import logging

from ordersync.client import HttpOrderApi
from ordersync.config import configure_logging, get_settings
from ordersync.errors import OrderApiError
from ordersync.models import CustomizationResult
from ordersync.notifications import ORDERS_UPDATED
from ordersync.sync import OrderSyncController

logger = logging.getLogger(__name__)


async def simulate(table_id: str, product_ids, send: bool) -> None:
    settings = get_settings()
    api = HttpOrderApi(settings.order_api_url, timeout=settings.http_timeout_seconds)
    listener = asyncio.ensure_future(api.listen_for_updates())
    api.notifications.subscribe(ORDERS_UPDATED, lambda: logger.info("Server reported an order change"))

    controller = OrderSyncController(
        api,
        table_id,
        settings=settings,
        on_error=lambda message, exc: logger.error("%s (%s)", message, exc),
        on_navigate=lambda: logger.info("Leaving the order screen"),
    )
    try:
        order = await controller.load()
        catalog = {product.id: product for product in await api.list_products()}

        for product_id in product_ids:
            product = catalog.get(product_id)
            if product is None:
                logger.warning("Unknown product %s, skipped", product_id)
                continue
            controller.add_product(product, CustomizationResult(quantity=1))
        await controller.scheduler.flush()

        order = controller.order
        logger.info("Order %s now has %d line(s), total %.2f", order.id, len(order.items), order.total)
        if send:
            sent = await controller.send_to_kitchen()
            if sent is not None:
                logger.info("Kitchen status: %s", sent.kitchen_status.value)
    finally:
        await controller.close()
        listener.cancel()
        await asyncio.gather(listener, return_exceptions=True)
        await api.aclose()


def main():
    parser = argparse.ArgumentParser(description="Simulate a waiter editing a table's order")
    parser.add_argument("--table", required=True, help="Table ID")
    parser.add_argument("--product", action="append", default=[], help="Product ID to add (repeatable)")
    parser.add_argument("--send", action="store_true", help="Send the order to the kitchen afterwards")
    args = parser.parse_args()

    configure_logging()
    try:
        asyncio.run(simulate(args.table, args.product, args.send))
    except OrderApiError as e:
        logger.error(f"Simulation failed: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
