"""Storage abstraction layer for the order service."""

from .base import Storage
from .inmemory import InMemoryStorage
from .sqlalchemy_adapter import SQLAlchemyStorage

__all__ = ["Storage", "InMemoryStorage", "SQLAlchemyStorage"]
