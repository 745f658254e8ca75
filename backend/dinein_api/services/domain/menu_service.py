"""
Menu Domain Service.

Categories, menu items and the prefix-scoped identifier allocator.

Menu item ids are the category prefix plus a zero-padded number (M001,
M002, ...). Allocation and insert share one transaction that begins with
an atomic increment of the category's high-water mark, so concurrent
creations for the same prefix queue on that row instead of reading the
same maximum.
"""

import re
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.config.logging import admin_logger
from shared.config.settings import settings
from shared.infrastructure.db import rollback_on_error, safe_commit
from shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    NotFoundError,
    ValidationError,
)
from shared.utils.validators import validate_image_path
from dinein_api.models import CartItem, Category, MenuItem, OrderItem
from .addon_service import AddonService

_DIGITS = re.compile(r"^\d+$")


def format_menu_id(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{Limits.MENU_ID_DIGITS}d}"


def parse_sequence(prefix: str, menu_item_id: str) -> int | None:
    """Numeric suffix of an id under prefix, or None when it is not numeric."""
    if not menu_item_id.startswith(prefix):
        return None
    suffix = menu_item_id[len(prefix):]
    if not _DIGITS.match(suffix):
        return None
    return int(suffix)


class MenuService:
    """Domain service for categories and menu items."""

    def __init__(self, db: Session):
        self._db = db

    # =========================================================================
    # Identifier allocation
    # =========================================================================

    def next_id(self, category_id: int) -> str:
        """
        Preview the id the next created item of a category would get.

        Read only: two previews can return the same id. Use
        create_menu_item to allocate.
        """
        category = self._db.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        sequence = max(category.last_sequence, self._max_sequence(category.prefix)) + 1
        return format_menu_id(category.prefix, sequence)

    def _max_sequence(self, prefix: str) -> int:
        ids = self._db.scalars(
            select(MenuItem.id).where(MenuItem.id.startswith(prefix, autoescape=True))
        ).all()
        sequences = [s for s in (parse_sequence(prefix, i) for i in ids) if s is not None]
        return max(sequences, default=0)

    def _allocate_id(self, category_id: int) -> tuple[Category, str]:
        """
        Reserve the next id of a category. Does not commit.

        Must be the first statement of the transaction: the UPDATE takes
        the category row's write lock before anything is read.
        """
        result = self._db.execute(
            update(Category)
            .where(Category.id == category_id)
            .values(last_sequence=Category.last_sequence + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Category", category_id)

        category = self._db.scalar(
            select(Category)
            .where(Category.id == category_id)
            .execution_options(populate_existing=True)
        )
        # Items inserted outside the allocator (imports, seeds) still count
        sequence = max(category.last_sequence, self._max_sequence(category.prefix) + 1)
        category.last_sequence = sequence
        return category, format_menu_id(category.prefix, sequence)

    # =========================================================================
    # Menu items
    # =========================================================================

    @rollback_on_error
    def create_menu_item(
        self,
        category_id: int,
        name: str,
        price: Decimal,
        description: str | None = None,
        image_path: str | None = None,
        is_available: bool = True,
    ) -> MenuItem:
        """Allocate an id and insert the item in one transaction."""
        name = _clean_name(name)
        _check_price(price)
        image_path = _clean_image(image_path) or settings.default_image_path

        category, menu_item_id = self._allocate_id(category_id)
        item = MenuItem(
            id=menu_item_id,
            category_id=category.id,
            name=name,
            description=description,
            price=price,
            image_path=image_path,
            is_available=is_available,
        )
        self._db.add(item)
        safe_commit(self._db, "create menu item")
        self._db.refresh(item)

        admin_logger.info(
            "Menu item created",
            menu_item_id=item.id,
            category_id=category_id,
            price=str(price),
        )
        return item

    def get_menu_item(self, menu_item_id: str) -> MenuItem:
        item = self._db.get(MenuItem, menu_item_id)
        if item is None:
            raise NotFoundError("Menu item", menu_item_id)
        return item

    @rollback_on_error
    def update_menu_item(
        self,
        menu_item_id: str,
        name: str | None = None,
        description: str | None = None,
        price: Decimal | None = None,
        image_path: str | None = None,
        is_available: bool | None = None,
    ) -> MenuItem:
        """Partial update. The id and category are fixed for life."""
        item = self.get_menu_item(menu_item_id)
        if name is not None:
            item.name = _clean_name(name)
        if description is not None:
            item.description = description
        if price is not None:
            _check_price(price)
            item.price = price
        if image_path is not None:
            item.image_path = _clean_image(image_path) or settings.default_image_path
        if is_available is not None:
            item.is_available = is_available

        safe_commit(self._db, "update menu item")
        self._db.refresh(item)
        admin_logger.info("Menu item updated", menu_item_id=menu_item_id)
        return item

    @rollback_on_error
    def toggle_availability(self, menu_item_id: str) -> MenuItem:
        item = self.get_menu_item(menu_item_id)
        item.is_available = not item.is_available
        safe_commit(self._db, "toggle menu item")
        self._db.refresh(item)
        admin_logger.info(
            "Menu item availability toggled",
            menu_item_id=menu_item_id,
            is_available=item.is_available,
        )
        return item

    @rollback_on_error
    def delete_menu_item(self, menu_item_id: str) -> None:
        """
        Delete an item and its add-ons (conflict edges cleared on both sides).

        Items still referenced by a cart line or an order line cannot be
        deleted; mark them unavailable instead. The id is never reissued.
        """
        self.get_menu_item(menu_item_id)
        in_carts = self._db.scalar(
            select(func.count(CartItem.id)).where(CartItem.menu_item_id == menu_item_id)
        )
        in_orders = self._db.scalar(
            select(func.count(OrderItem.id)).where(OrderItem.menu_item_id == menu_item_id)
        )
        if in_carts or in_orders:
            raise ConflictError(
                "Menu item is referenced by carts or orders; mark it unavailable instead",
                menu_item_id=menu_item_id,
                cart_lines=in_carts,
                order_lines=in_orders,
            )

        removed = AddonService(self._db).remove_for_menu_item(menu_item_id)
        self._db.execute(
            MenuItem.__table__.delete().where(MenuItem.id == menu_item_id)
        )
        safe_commit(self._db, "delete menu item")
        admin_logger.info(
            "Menu item deleted",
            menu_item_id=menu_item_id,
            addons_removed=removed,
        )

    def list_menu(
        self,
        available_only: bool = False,
        category_id: int | None = None,
    ) -> list[MenuItem]:
        """
        Menu items ordered by category display order, then id.

        available_only hides unavailable items and inactive categories.
        """
        query = select(MenuItem).join(Category, MenuItem.category_id == Category.id)
        if available_only:
            query = query.where(
                MenuItem.is_available.is_(True),
                Category.is_active.is_(True),
            )
        if category_id is not None:
            query = query.where(MenuItem.category_id == category_id)
        query = query.order_by(Category.display_order, MenuItem.id)
        return list(self._db.scalars(query).all())

    # =========================================================================
    # Categories
    # =========================================================================

    def list_categories(self, active_only: bool = False) -> list[Category]:
        query = select(Category)
        if active_only:
            query = query.where(Category.is_active.is_(True))
        return list(self._db.scalars(query.order_by(Category.display_order, Category.id)).all())

    def get_category(self, category_id: int) -> Category:
        category = self._db.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    @rollback_on_error
    def create_category(
        self,
        name: str,
        prefix: str,
        display_order: int,
        description: str | None = None,
        is_active: bool = True,
    ) -> Category:
        """
        Raises:
            DuplicateEntityError: prefix taken, or display order taken by an active category
        """
        prefix = _clean_prefix(prefix)
        _check_display_order(display_order)
        self._ensure_prefix_free(prefix)
        if is_active:
            self._ensure_display_order_free(display_order)

        category = Category(
            name=_clean_name(name),
            prefix=prefix,
            description=description,
            display_order=display_order,
            is_active=is_active,
            last_sequence=0,
        )
        self._db.add(category)
        safe_commit(self._db, "create category")
        self._db.refresh(category)

        admin_logger.info("Category created", category_id=category.id, prefix=prefix)
        return category

    @rollback_on_error
    def update_category(
        self,
        category_id: int,
        name: str | None = None,
        prefix: str | None = None,
        description: str | None = None,
        display_order: int | None = None,
        is_active: bool | None = None,
    ) -> Category:
        """
        Partial update.

        The prefix of a category that already has items cannot change, since
        their ids embed it.
        """
        category = self.get_category(category_id)

        if prefix is not None:
            prefix = _clean_prefix(prefix)
            if prefix != category.prefix:
                if self._has_items(category_id):
                    raise ValidationError(
                        "Cannot change the prefix of a category that has menu items",
                        category_id=category_id,
                    )
                self._ensure_prefix_free(prefix, exclude_id=category_id)
                category.prefix = prefix
                category.last_sequence = 0

        new_order = display_order if display_order is not None else category.display_order
        new_active = is_active if is_active is not None else category.is_active
        _check_display_order(new_order)
        if new_active:
            self._ensure_display_order_free(new_order, exclude_id=category_id)
        category.display_order = new_order
        category.is_active = new_active

        if name is not None:
            category.name = _clean_name(name)
        if description is not None:
            category.description = description

        safe_commit(self._db, "update category")
        self._db.refresh(category)
        admin_logger.info("Category updated", category_id=category_id)
        return category

    @rollback_on_error
    def toggle_category(self, category_id: int) -> Category:
        category = self.get_category(category_id)
        if not category.is_active:
            self._ensure_display_order_free(category.display_order, exclude_id=category_id)
        category.is_active = not category.is_active
        safe_commit(self._db, "toggle category")
        self._db.refresh(category)
        admin_logger.info(
            "Category status toggled",
            category_id=category_id,
            is_active=category.is_active,
        )
        return category

    @rollback_on_error
    def delete_category(self, category_id: int) -> None:
        """Refused while the category still has menu items."""
        category = self.get_category(category_id)
        if self._has_items(category_id):
            raise ConflictError(
                f"Cannot delete category '{category.name}' because it has menu items",
                category_id=category_id,
            )
        self._db.delete(category)
        safe_commit(self._db, "delete category")
        admin_logger.info("Category deleted", category_id=category_id)

    def next_display_order(self) -> int:
        """Highest display order among active categories plus one."""
        current = self._db.scalar(
            select(func.max(Category.display_order)).where(Category.is_active.is_(True))
        )
        return (current or 0) + 1

    def _has_items(self, category_id: int) -> bool:
        return bool(
            self._db.scalar(
                select(func.count(MenuItem.id)).where(MenuItem.category_id == category_id)
            )
        )

    def _ensure_prefix_free(self, prefix: str, exclude_id: int | None = None) -> None:
        query = select(Category.id).where(Category.prefix == prefix)
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Category prefix", prefix)

    def _ensure_display_order_free(self, display_order: int, exclude_id: int | None = None) -> None:
        query = select(Category.id).where(
            Category.display_order == display_order,
            Category.is_active.is_(True),
        )
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Category display order", str(display_order))


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required", field="name")
    if len(name) > Limits.MAX_NAME:
        raise ValidationError(f"Name cannot exceed {Limits.MAX_NAME} characters", field="name")
    return name


def _clean_prefix(prefix: str) -> str:
    prefix = (prefix or "").strip().upper()
    if not prefix.isalpha() or not prefix.isascii() or len(prefix) > Limits.MAX_CATEGORY_PREFIX:
        raise ValidationError(
            f"Prefix must be 1 to {Limits.MAX_CATEGORY_PREFIX} letters",
            field="prefix",
            value=prefix,
        )
    return prefix


def _clean_image(path: str | None) -> str | None:
    try:
        return validate_image_path(path)
    except ValueError as e:
        raise ValidationError(str(e), field="image_path") from e


def _check_price(price: Decimal) -> None:
    if price < 0:
        raise ValidationError("Price cannot be negative", field="price", value=str(price))


def _check_display_order(display_order: int) -> None:
    if not 0 <= display_order <= Limits.MAX_DISPLAY_ORDER:
        raise ValidationError(
            f"Display order must be between 0 and {Limits.MAX_DISPLAY_ORDER}",
            field="display_order",
            value=display_order,
        )
