"""Exception hierarchy shared by the sync engine, the API clients and the service."""

from typing import Optional


class OrderSyncError(Exception):
    """Base class for every error raised by ordersync."""


class ConfigurationError(OrderSyncError):
    """Raised when an environment setting is invalid."""


class OrderApiError(OrderSyncError):
    """
    A call to the order API failed (network error, rejected request, server error).

    status_code is set when the failure came back as an HTTP response.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OrderNotFoundError(OrderApiError):
    """The referenced order does not exist."""

    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}", status_code=404)
        self.order_id = order_id


class TableNotFoundError(OrderApiError):
    """The referenced table does not exist."""

    def __init__(self, table_id: str):
        super().__init__(f"Table not found: {table_id}", status_code=404)
        self.table_id = table_id


class OrderStateError(OrderApiError):
    """The order is in a state that does not allow the requested change."""

    def __init__(self, message: str):
        super().__init__(message, status_code=409)
