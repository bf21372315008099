"""Order API clients used by the sync engine."""

from ordersync.client.base import OrderApi
from ordersync.client.http import HttpOrderApi
from ordersync.client.local import LocalOrderApi

__all__ = ["OrderApi", "HttpOrderApi", "LocalOrderApi"]
