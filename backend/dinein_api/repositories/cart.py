"""
Cart Repository - Data access and explicit delete batches for carts.

Carts are never removed through ORM cascades. Every path that drops a cart
(checkout, clear, release, sweeps) goes through purge(), which deletes the
add-on snapshots, then the lines, then the carts, inside the caller's
transaction.
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import Select, delete, select
from sqlalchemy.orm import Session, selectinload

from dinein_api.models import Cart, CartItem, CartItemAddon
from .base import BaseRepository


class CartRepository(BaseRepository[Cart]):
    """
    Repository for Cart entities.

    Guarantees eager loading of:
    - items -> addons
    - items -> menu_item
    """

    @property
    def model(self) -> type[Cart]:
        return Cart

    def _base_query(self) -> Select:
        return select(Cart).options(
            selectinload(Cart.items).selectinload(CartItem.addons),
            selectinload(Cart.items).joinedload(CartItem.menu_item),
        )

    def find_by_table(self, table_id: int) -> Cart | None:
        """The active cart of a table, if any."""
        query = self._base_query().where(Cart.table_id == table_id)
        return self._db.execute(query).scalars().unique().first()

    def find_item(self, item_id: int) -> CartItem | None:
        """A cart line with its add-on snapshots and owning cart."""
        return self._db.scalar(
            select(CartItem)
            .where(CartItem.id == item_id)
            .options(selectinload(CartItem.addons), selectinload(CartItem.cart))
        )

    def find_expired_ids(self, cutoff: datetime) -> list[int]:
        """Ids of carts created strictly before cutoff."""
        return list(
            self._db.scalars(select(Cart.id).where(Cart.created_at < cutoff)).all()
        )

    def ids_for_tables(self, table_ids: Sequence[int]) -> list[int]:
        if not table_ids:
            return []
        return list(
            self._db.scalars(select(Cart.id).where(Cart.table_id.in_(table_ids))).all()
        )

    def delete_items(self, item_ids: Sequence[int]) -> None:
        """Delete cart lines and their add-on snapshots."""
        if not item_ids:
            return
        self._db.execute(
            delete(CartItemAddon)
            .where(CartItemAddon.cart_item_id.in_(item_ids))
            .execution_options(synchronize_session=False)
        )
        self._db.execute(
            delete(CartItem)
            .where(CartItem.id.in_(item_ids))
            .execution_options(synchronize_session=False)
        )

    def purge(self, cart_ids: Sequence[int]) -> int:
        """
        Delete carts with all their lines. Does not commit.

        Returns the number of carts removed.
        """
        if not cart_ids:
            return 0
        item_ids = select(CartItem.id).where(CartItem.cart_id.in_(cart_ids))
        self._db.execute(
            delete(CartItemAddon)
            .where(CartItemAddon.cart_item_id.in_(item_ids))
            .execution_options(synchronize_session=False)
        )
        self._db.execute(
            delete(CartItem)
            .where(CartItem.cart_id.in_(cart_ids))
            .execution_options(synchronize_session=False)
        )
        result = self._db.execute(
            delete(Cart)
            .where(Cart.id.in_(cart_ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


def get_cart_repository(db: Session) -> CartRepository:
    """Factory function for dependency injection."""
    return CartRepository(db)
