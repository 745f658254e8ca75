"""
Order Repository - Data access for orders.
Eager loading keeps order listings free of N+1 queries.
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, selectinload, joinedload

from dinein_api.models import Order, OrderItem
from shared.config.constants import OrderStatus
from .base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """
    Repository for Order entities.

    Guarantees eager loading of:
    - items -> menu_item
    - items -> addons
    - payments
    """

    @property
    def model(self) -> type[Order]:
        return Order

    def _base_query(self) -> Select:
        return (
            select(Order)
            .options(
                selectinload(Order.items).joinedload(OrderItem.menu_item),
                selectinload(Order.items).selectinload(OrderItem.addons),
                selectinload(Order.payments),
            )
            .order_by(Order.order_date, Order.id)
        )

    def find_for_table(
        self,
        table_id: int,
        since: datetime | None = None,
    ) -> Sequence[Order]:
        """Order history of a table, oldest first. since limits it to orders from then on."""
        query = self._base_query().where(Order.table_id == table_id)
        if since is not None:
            query = query.where(Order.order_date >= since)
        return self._db.execute(query).scalars().unique().all()

    def find_recent(self, status: str | None = None, limit: int | None = None) -> Sequence[Order]:
        """Transaction history across all tables, newest first."""
        query = (
            self._base_query()
            .order_by(None)
            .order_by(Order.order_date.desc(), Order.id.desc())
        )
        if status is not None:
            query = query.where(Order.status == status)
        if limit is not None:
            query = query.limit(limit)
        return self._db.execute(query).scalars().unique().all()

    def find_pending_payment(self) -> Sequence[Order]:
        """Orders waiting for counter settlement, oldest first."""
        query = self._base_query().where(Order.status == OrderStatus.PENDING_PAYMENT)
        return self._db.execute(query).scalars().unique().all()


def get_order_repository(db: Session) -> OrderRepository:
    """Factory function for dependency injection."""
    return OrderRepository(db)
