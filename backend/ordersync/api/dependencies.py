"""FastAPI dependencies."""

from fastapi import Request

from ordersync.service import OrderService


def get_service(request: Request) -> OrderService:
    """Order service stored on app.state by create_app()."""
    return request.app.state.service
