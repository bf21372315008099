"""
SQLAlchemy storage implementation.

Implements the Storage interface on top of the ORM models in
ordersync.storage.models. Each call opens its own session.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from ordersync.storage.base import Storage
from ordersync.storage.models import (
    OrderItemModel,
    OrderModel,
    ProductModel,
    TableModel,
    init_db,
)

logger = logging.getLogger(__name__)


class SQLAlchemyStorage(Storage):
    """
    SQLAlchemy-backed storage.

    Works with any SQLAlchemy URL; SQLite URLs get check_same_thread disabled
    so the storage can be shared by the server's worker threads.
    """

    def __init__(self, database_url: str = "sqlite:///ordersync.db"):
        """
        Initialize SQLAlchemy storage and create missing tables.

        Args:
            database_url: SQLAlchemy database URL
        """
        self.database_url = database_url

        self.engine = create_engine(
            self.database_url,
            connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
            echo=False,
            future=True,
            pool_pre_ping=True,
        )
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        init_db(self.engine)
        logger.info("Database initialized at %s", self.database_url)

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def get_table(self, table_id: str) -> Optional[Dict[str, Any]]:
        db_session = self._get_session()
        try:
            table = db_session.get(TableModel, table_id)
            return table.to_dict() if table else None
        finally:
            db_session.close()

    def list_tables(self) -> List[Dict[str, Any]]:
        db_session = self._get_session()
        try:
            stmt = select(TableModel).order_by(TableModel.name)
            return [table.to_dict() for table in db_session.execute(stmt).scalars().all()]
        finally:
            db_session.close()

    def save_table(self, table: Dict[str, Any]) -> None:
        db_session = self._get_session()
        try:
            with db_session.begin():
                row = db_session.get(TableModel, table["id"])
                if row is None:
                    row = TableModel(id=table["id"])
                    db_session.add(row)
                row.update_from(table)
        finally:
            db_session.close()

    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        db_session = self._get_session()
        try:
            stmt = (
                select(OrderModel)
                .where(OrderModel.id == order_id)
                .options(selectinload(OrderModel.items))
            )
            order = db_session.execute(stmt).scalar_one_or_none()
            return order.to_dict() if order else None
        finally:
            db_session.close()

    def save_order(self, order: Dict[str, Any]) -> None:
        """Upsert the order row and replace its items with order["items"]."""
        db_session = self._get_session()
        try:
            with db_session.begin():
                row = db_session.get(OrderModel, order["id"])
                if row is None:
                    row = OrderModel(id=order["id"])
                    db_session.add(row)
                row.update_from(order)
                row.items.clear()
                db_session.flush()
                row.items.extend(
                    OrderItemModel.from_dict(item, position)
                    for position, item in enumerate(order.get("items", []))
                )
        except Exception:
            logger.exception("Failed to save order %s", order.get("id"))
            raise
        finally:
            db_session.close()

    def delete_order(self, order_id: str) -> bool:
        db_session = self._get_session()
        try:
            with db_session.begin():
                row = db_session.get(OrderModel, order_id)
                if row is None:
                    return False
                db_session.delete(row)
                return True
        finally:
            db_session.close()

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        db_session = self._get_session()
        try:
            product = db_session.get(ProductModel, product_id)
            return product.to_dict() if product else None
        finally:
            db_session.close()

    def list_products(self) -> List[Dict[str, Any]]:
        db_session = self._get_session()
        try:
            stmt = select(ProductModel).order_by(ProductModel.name)
            return [product.to_dict() for product in db_session.execute(stmt).scalars().all()]
        finally:
            db_session.close()

    def save_product(self, product: Dict[str, Any]) -> None:
        db_session = self._get_session()
        try:
            with db_session.begin():
                row = db_session.get(ProductModel, product["id"])
                if row is None:
                    row = ProductModel(id=product["id"])
                    db_session.add(row)
                row.update_from(product)
        finally:
            db_session.close()

    def clear(self) -> None:
        """Delete every row (schema is kept)."""
        db_session = self._get_session()
        try:
            with db_session.begin():
                for model in (OrderItemModel, OrderModel, TableModel, ProductModel):
                    db_session.query(model).delete()
        finally:
            db_session.close()
