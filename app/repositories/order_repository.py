"""
Order store backed by the orders table

Filters are plain ``{column: value}`` mappings so the engine can express
queries without touching SQLAlchemy.
"""

from typing import Any, Optional
import logging

from sqlalchemy.orm import Session

from app.models.order import Order
from app.utils.error_handler import database_operation

logger = logging.getLogger(__name__)


class OrderRepository:
    """Persists order records; supports filtered, paginated and sorted retrieval"""

    def __init__(self, db: Session):
        self.db = db

    def _filtered(self, filters: dict[str, Any]):
        query = self.db.query(Order)
        for column, value in filters.items():
            query = query.filter(getattr(Order, column) == value)
        return query

    def create(self, **fields) -> Order:
        order = Order(**fields)
        with database_operation(self.db, "create order"):
            self.db.add(order)
            self.db.commit()
            self.db.refresh(order)
        return order

    def get_by_id(self, order_id: int) -> Optional[Order]:
        with database_operation(self.db, "look up order"):
            return self.db.query(Order).filter(Order.id == order_id).first()

    def find(self, filters: dict[str, Any], skip: int = 0, limit: int = 10) -> list[Order]:
        """Newest first; ties on created_at fall back to insertion order"""
        with database_operation(self.db, "retrieve orders"):
            return (
                self._filtered(filters)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .offset(skip)
                .limit(limit)
                .all()
            )

    def count(self, filters: dict[str, Any]) -> int:
        with database_operation(self.db, "count orders"):
            return self._filtered(filters).count()

    def compare_and_swap(self, order_id: int, expected: dict[str, Any], changes: dict[str, Any]) -> bool:
        """Apply ``changes`` only if the stored row still matches ``expected``

        Returns False when no row matched, i.e. the order was modified (or
        removed) since it was read.
        """
        with database_operation(self.db, "update order"):
            updated = (
                self._filtered({"id": order_id, **expected})
                .update(changes, synchronize_session="fetch")
            )
            self.db.commit()
        return updated == 1
