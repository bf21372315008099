"""
Domain models shared by the sync engine, the API clients and the order service.

Orders and line items are immutable values: every edit produces a new object
(model_copy(update=...)), so the state store can hand out references without
defensive copies.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ItemStatus(str, Enum):
    """Kitchen status of a single line item."""
    PENDING = "pending"  # not yet sent to the kitchen
    SENT = "sent"


class KitchenStatus(str, Enum):
    """Kitchen status of a whole order."""
    NOT_SENT = "not_sent"
    RECEIVED = "received"
    READY = "ready"
    SERVED = "served"


class OrderStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    FINALIZED = "finalized"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"


class TableStatus(str, Enum):
    FREE = "free"
    IN_KITCHEN = "in_kitchen"
    TO_SERVE = "to_serve"
    TO_PAY = "to_pay"


class LineItem(BaseModel):
    """One product line within an order."""

    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    product_name: str
    unit_price: float
    quantity: int = Field(ge=1)
    comment: str = ""
    excluded_ingredients: List[str] = Field(default_factory=list)
    status: ItemStatus = ItemStatus.PENDING
    sent_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == ItemStatus.PENDING

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


class Order(BaseModel):
    """A table's current transaction."""

    model_config = ConfigDict(frozen=True)

    id: str
    table_id: Optional[str] = None
    table_name: Optional[str] = None
    covers: int = 0
    status: OrderStatus = OrderStatus.IN_PROGRESS
    kitchen_status: KitchenStatus = KitchenStatus.NOT_SENT
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_method: Optional[PaymentMethod] = None
    payment_receipt_url: Optional[str] = None
    items: List[LineItem] = Field(default_factory=list)
    total: float = 0.0
    created_at: Optional[datetime] = None
    sent_to_kitchen_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    served_at: Optional[datetime] = None

    def with_items(self, items: Iterable[LineItem]) -> "Order":
        """Return a copy carrying items and the total recomputed from them."""
        new_items = list(items)
        return self.model_copy(update={"items": new_items, "total": compute_total(new_items)})

    def pending_items(self) -> List[LineItem]:
        return [item for item in self.items if item.is_pending]


class Product(BaseModel):
    """A catalog product that can be added to an order."""

    id: str
    name: str
    price: float = Field(ge=0)
    category_id: Optional[str] = None
    default_excluded_ingredients: List[str] = Field(default_factory=list)
    is_available: bool = True


class Table(BaseModel):
    """A restaurant table and the order currently open on it."""

    id: str
    name: str
    capacity: int = Field(default=4, ge=0)
    status: TableStatus = TableStatus.FREE
    order_id: Optional[str] = None
    covers: Optional[int] = None


class CustomizationResult(BaseModel):
    """What the waiter picked in the customization dialog for a product."""

    quantity: Optional[float] = 1
    comment: Optional[str] = None
    excluded_ingredients: List[str] = Field(default_factory=list)


class OrderItemsUpdate(BaseModel):
    """Body of an order items write: the full item list plus explicitly removed IDs."""

    items: List[LineItem] = Field(default_factory=list)
    removed_item_ids: List[str] = Field(default_factory=list)


def compute_total(items: Iterable[LineItem]) -> float:
    """Sum of unit price x quantity over items, rounded to cents."""
    return round(sum(item.unit_price * item.quantity for item in items), 2)


def clone_order(order: Order) -> Order:
    """Deep copy of an order, used for confirmed/server snapshots."""
    return order.model_copy(deep=True)
