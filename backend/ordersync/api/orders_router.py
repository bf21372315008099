"""Tables and orders API router."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from ordersync.api.dependencies import get_service
from ordersync.models import Order, OrderItemsUpdate, PaymentMethod, Table
from ordersync.service import OrderService

logger = logging.getLogger(__name__)

tables_router = APIRouter(prefix="/api/tables", tags=["tables"])
orders_router = APIRouter(prefix="/api/orders", tags=["orders"])


class CreateTableRequest(BaseModel):
    """Request body for creating a table."""
    name: str
    capacity: int = Field(default=4, ge=0)


class SendToKitchenRequest(BaseModel):
    """Pending item IDs to send; empty sends every pending item."""
    item_ids: List[str] = Field(default_factory=list)


class FinalizeRequest(BaseModel):
    payment_method: PaymentMethod
    receipt_url: Optional[str] = None


@tables_router.get("", response_model=List[Table], summary="List tables")
async def list_tables(service: OrderService = Depends(get_service)) -> List[Table]:
    return service.list_tables()


@tables_router.post("", response_model=Table, status_code=201, summary="Create table")
async def create_table(
    payload: CreateTableRequest, service: OrderService = Depends(get_service)
) -> Table:
    return service.add_table(payload.name, payload.capacity)


@tables_router.get("/{table_id}", response_model=Table, summary="Get table")
async def get_table(table_id: str, service: OrderService = Depends(get_service)) -> Table:
    return service.get_table(table_id)


@tables_router.post("/{table_id}/order", response_model=Order, summary="Open or fetch the table's order")
async def create_or_get_order(table_id: str, service: OrderService = Depends(get_service)) -> Order:
    """
    Return the open order of a table, creating one when the table has none.

    - **404**: unknown table
    """
    return service.create_or_get_order(table_id)


@orders_router.get("/{order_id}", response_model=Order, summary="Get order")
async def get_order(order_id: str, service: OrderService = Depends(get_service)) -> Order:
    order = service.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order not found: {order_id}")
    return order


@orders_router.put("/{order_id}/items", response_model=Order, summary="Write the order's item list")
async def update_order_items(
    order_id: str,
    payload: OrderItemsUpdate,
    notify: bool = Query(True, description="Publish the staff notification"),
    service: OrderService = Depends(get_service),
) -> Order:
    """
    Replace the item list of an order.

    Items without a persisted ID are inserted; removed_item_ids are deleted;
    the response lists items in request order.

    - **404**: unknown order
    - **409**: order already finalized
    """
    return service.update_order(order_id, payload.items, payload.removed_item_ids, notify=notify)


@orders_router.post("/{order_id}/kitchen", response_model=Order, summary="Send pending items to the kitchen")
async def send_to_kitchen(
    order_id: str,
    payload: Optional[SendToKitchenRequest] = None,
    service: OrderService = Depends(get_service),
) -> Order:
    item_ids = payload.item_ids if payload is not None else []
    return service.send_to_kitchen(order_id, item_ids)


@orders_router.post("/{order_id}/ready", response_model=Order, summary="Kitchen marks the order ready")
async def mark_ready(order_id: str, service: OrderService = Depends(get_service)) -> Order:
    return service.mark_ready(order_id)


@orders_router.post("/{order_id}/served", response_model=Order, summary="Mark the order served")
async def mark_served(order_id: str, service: OrderService = Depends(get_service)) -> Order:
    return service.mark_served(order_id)


@orders_router.post("/{order_id}/finalize", response_model=Order, summary="Record payment and free the table")
async def finalize(
    order_id: str, payload: FinalizeRequest, service: OrderService = Depends(get_service)
) -> Order:
    return service.finalize(order_id, payload.payment_method, payload.receipt_url)


@orders_router.delete("/{order_id}", status_code=204, summary="Cancel an order nothing of which was sent")
async def cancel_unsent_order(order_id: str, service: OrderService = Depends(get_service)) -> Response:
    service.cancel_unsent_order(order_id)
    return Response(status_code=204)
