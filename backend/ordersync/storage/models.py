"""
SQLAlchemy ORM models for order persistence.

Defines the database schema for tables, orders, order items and products.
Maps to SQLite (or other SQL databases) via SQLAlchemy 2.0.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

from ordersync.utils.time_utils import now_utc, to_utc

Base = declarative_base()


def _enum_value(value):
    return getattr(value, "value", value)


class TableModel(Base):
    """Restaurant table and the order currently open on it."""

    __tablename__ = "restaurant_tables"

    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False)
    capacity = Column(Integer, default=4, nullable=False)
    status = Column(String, default="free", nullable=False)
    order_id = Column(String(36), nullable=True)
    covers = Column(Integer, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "capacity": self.capacity,
            "status": self.status,
            "order_id": self.order_id,
            "covers": self.covers,
        }

    def update_from(self, data):
        self.name = data["name"]
        self.capacity = data.get("capacity", 4)
        self.status = _enum_value(data.get("status", "free"))
        self.order_id = data.get("order_id")
        self.covers = data.get("covers")


class OrderModel(Base):
    """An order with its line items."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    table_id = Column(String(36), nullable=True)
    table_name = Column(String, nullable=True)
    covers = Column(Integer, default=0, nullable=False)
    status = Column(String, default="in_progress", nullable=False)
    kitchen_status = Column(String, default="not_sent", nullable=False)
    payment_status = Column(String, default="unpaid", nullable=False)
    payment_method = Column(String, nullable=True)
    payment_receipt_url = Column(String, nullable=True)
    total = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    sent_to_kitchen_at = Column(DateTime(timezone=True), nullable=True)
    ready_at = Column(DateTime(timezone=True), nullable=True)
    served_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItemModel",
        order_by="OrderItemModel.position",
        cascade="all, delete-orphan",
        back_populates="order",
    )

    __table_args__ = (
        Index("idx_orders_table_id", "table_id"),
    )

    def to_dict(self):
        """Convert to dictionary matching the storage interface."""
        return {
            "id": self.id,
            "table_id": self.table_id,
            "table_name": self.table_name,
            "covers": self.covers,
            "status": self.status,
            "kitchen_status": self.kitchen_status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "payment_receipt_url": self.payment_receipt_url,
            "total": self.total,
            "created_at": to_utc(self.created_at),
            "sent_to_kitchen_at": to_utc(self.sent_to_kitchen_at),
            "ready_at": to_utc(self.ready_at),
            "served_at": to_utc(self.served_at),
            "items": [item.to_dict() for item in self.items],
        }

    def update_from(self, data):
        """Copy the scalar fields of an order dict onto this row (items excluded)."""
        self.table_id = data.get("table_id")
        self.table_name = data.get("table_name")
        self.covers = data.get("covers") or 0
        self.status = _enum_value(data.get("status", "in_progress"))
        self.kitchen_status = _enum_value(data.get("kitchen_status", "not_sent"))
        self.payment_status = _enum_value(data.get("payment_status", "unpaid"))
        self.payment_method = _enum_value(data.get("payment_method"))
        self.payment_receipt_url = data.get("payment_receipt_url")
        self.total = data.get("total") or 0.0
        self.created_at = data.get("created_at") or now_utc()
        self.sent_to_kitchen_at = data.get("sent_to_kitchen_at")
        self.ready_at = data.get("ready_at")
        self.served_at = data.get("served_at")


class OrderItemModel(Base):
    """One line item; position keeps the order's display order."""

    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String(36), nullable=False)
    product_name = Column(String, nullable=False)
    unit_price = Column(Float, nullable=False, default=0.0)
    quantity = Column(Integer, nullable=False, default=1)
    comment = Column(String, nullable=False, default="")
    excluded_ingredients = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default="pending")  # pending / sent
    sent_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("OrderModel", back_populates="items")

    __table_args__ = (
        Index("idx_order_items_order_id", "order_id"),
    )

    @classmethod
    def from_dict(cls, data, position):
        return cls(
            id=data["id"],
            position=position,
            product_id=data["product_id"],
            product_name=data["product_name"],
            unit_price=data.get("unit_price") or 0.0,
            quantity=data.get("quantity") or 1,
            comment=data.get("comment") or "",
            excluded_ingredients=list(data.get("excluded_ingredients") or []),
            status=_enum_value(data.get("status", "pending")),
            sent_at=data.get("sent_at"),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "comment": self.comment or "",
            "excluded_ingredients": list(self.excluded_ingredients or []),
            "status": self.status,
            "sent_at": to_utc(self.sent_at),
        }


class ProductModel(Base):
    """Catalog product."""

    __tablename__ = "products"

    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    category_id = Column(String(36), nullable=True)
    default_excluded_ingredients = Column(JSON, nullable=False, default=list)
    is_available = Column(Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "category_id": self.category_id,
            "default_excluded_ingredients": list(self.default_excluded_ingredients or []),
            "is_available": self.is_available,
        }

    def update_from(self, data):
        self.name = data["name"]
        self.price = data.get("price") or 0.0
        self.category_id = data.get("category_id")
        self.default_excluded_ingredients = list(data.get("default_excluded_ingredients") or [])
        self.is_available = data.get("is_available", True)


def init_db(engine: Engine) -> None:
    """Create missing tables (existing data is preserved)."""
    Base.metadata.create_all(engine)
