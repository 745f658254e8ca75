"""
Cart Domain Service.

One cart per table, owned by the session holding the table. Lines freeze
the unit price (menu price plus selected add-ons) when added, and keep a
structured snapshot of the chosen add-ons. Display text such as
"Cheese (+$1.50), Bacon (+$2.00)" is rebuilt from that snapshot.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.config.logging import diner_logger, mask_token
from shared.infrastructure.db import rollback_on_error, safe_commit
from shared.utils.clock import Clock, utcnow
from shared.utils.exceptions import (
    ConflictViolationError,
    NotFoundError,
    ValidationError,
)
from shared.utils.money import CartTotals, compute_totals, format_money, line_subtotal
from shared.utils.schemas import (
    AddonSelectionOutput,
    CartItemOutput,
    CartOutput,
    CartSummaryOutput,
    TotalsOutput,
)
from shared.utils.validators import sanitize_instructions
from dinein_api.models import Addon, Cart, CartItem, CartItemAddon, MenuItem
from dinein_api.repositories import get_cart_repository
from .addon_service import AddonService
from .table_lock_service import TableLockService


def format_addons(addons: Iterable) -> str:
    """Display text for add-on snapshots (anything with name and price)."""
    return ", ".join(f"{a.name} (+${format_money(a.price)})" for a in addons)


def totals_output(totals: CartTotals) -> TotalsOutput:
    shown = totals.rounded()
    return TotalsOutput(subtotal=shown.subtotal, tax=shown.tax, total=shown.total)


def clean_instructions(text: str | None) -> str | None:
    try:
        return sanitize_instructions(text)
    except ValueError as e:
        raise ValidationError(str(e), field="instructions") from e


class CartService:
    """
    Domain service for cart operations.

    Every mutation first claims or confirms the table row through
    TableLockService.lock_for_session, inside the same transaction as the
    cart writes. A rejected mutation rolls that claim back with it.
    """

    def __init__(self, db: Session, clock: Clock = utcnow):
        self._db = db
        self._clock = clock
        self._carts = get_cart_repository(db)
        self._locks = TableLockService(db, clock)
        self._addons = AddonService(db)

    # =========================================================================
    # Mutations
    # =========================================================================

    @rollback_on_error
    def add_item(
        self,
        table_id: int,
        session_token: str,
        menu_item_id: str,
        quantity: int = 1,
        addon_ids: Iterable[int] = (),
        instructions: str | None = None,
    ) -> CartItem:
        """
        Add a menu item to the table's cart.

        A line with the same menu item, price, instructions and add-on set
        absorbs the quantity; anything else becomes a new line. The cart is
        created on first add.

        Raises:
            NotFoundError: table, menu item or add-on missing
            NotOwnerError: table held by another session
            ValidationError: bad quantity, unavailable item or add-on
            ConflictViolationError: two selected add-ons cannot be combined
        """
        _check_quantity(quantity)
        instructions = clean_instructions(instructions)

        self._locks.lock_for_session(table_id, session_token)
        menu_item = self._available_menu_item(menu_item_id)
        selected = self._resolve_addons(menu_item, addon_ids)
        unit_price = _unit_price(menu_item, selected)

        cart = self._carts.find_by_table(table_id)
        if cart is None:
            cart = Cart(table_id=table_id, created_at=self._clock())
            self._db.add(cart)
            self._db.flush()

        signature = frozenset(a.id for a in selected)
        line = _matching_line(cart.items, menu_item.id, instructions, unit_price, signature)
        if line is not None:
            merged = line.quantity + quantity
            _check_quantity(merged)
            line.quantity = merged
        else:
            line = CartItem(
                cart_id=cart.id,
                menu_item_id=menu_item.id,
                quantity=quantity,
                unit_price=unit_price,
                instructions=instructions,
                addons=[
                    CartItemAddon(addon_id=a.id, name=a.name, price=a.price)
                    for a in selected
                ],
            )
            self._db.add(line)

        safe_commit(self._db, "add to cart")
        self._db.refresh(line)

        diner_logger.info(
            "Item added to cart",
            table_id=table_id,
            cart_id=cart.id,
            menu_item_id=menu_item.id,
            quantity=quantity,
            addon_ids=sorted(signature),
            session=mask_token(session_token),
        )
        return line

    @rollback_on_error
    def update_item(self, item_id: int, session_token: str, quantity: int) -> CartItem | None:
        """
        Set a line's quantity. Zero or less removes the line and returns None.
        """
        item = self._owned_item(item_id, session_token)
        if quantity <= 0:
            self._carts.delete_items([item.id])
            safe_commit(self._db, "remove cart item")
            diner_logger.info("Cart item removed", item_id=item_id, session=mask_token(session_token))
            return None

        _check_quantity(quantity)
        item.quantity = quantity
        safe_commit(self._db, "update cart item")
        self._db.refresh(item)
        diner_logger.info("Cart item updated", item_id=item_id, quantity=quantity)
        return item

    @rollback_on_error
    def update_item_details(
        self,
        item_id: int,
        session_token: str,
        quantity: int,
        instructions: str | None = None,
        addon_ids: Iterable[int] = (),
    ) -> CartItem | None:
        """
        Replace a line's quantity, instructions and add-on selection.

        The unit price is recomputed from current menu and add-on prices.
        If the line ends up identical to another line of the cart, the two
        merge and the surviving line is returned.
        """
        item = self._owned_item(item_id, session_token)
        if quantity <= 0:
            self._carts.delete_items([item.id])
            safe_commit(self._db, "remove cart item")
            return None

        _check_quantity(quantity)
        instructions = clean_instructions(instructions)
        menu_item = self._available_menu_item(item.menu_item_id)
        selected = self._resolve_addons(menu_item, addon_ids)
        unit_price = _unit_price(menu_item, selected)

        twin = _matching_line(
            (other for other in item.cart.items if other.id != item.id),
            menu_item.id,
            instructions,
            unit_price,
            frozenset(a.id for a in selected),
        )
        if twin is not None:
            merged = twin.quantity + quantity
            _check_quantity(merged)
            twin.quantity = merged
            self._db.flush()
            self._carts.delete_items([item.id])
            safe_commit(self._db, "merge cart items")
            self._db.refresh(twin)
            diner_logger.info(
                "Cart items merged",
                item_id=item_id,
                into_item_id=twin.id,
                quantity=merged,
            )
            return twin

        for old in item.addons:
            self._db.delete(old)
        self._db.add_all(
            CartItemAddon(cart_item_id=item.id, addon_id=a.id, name=a.name, price=a.price)
            for a in selected
        )
        item.quantity = quantity
        item.instructions = instructions
        item.unit_price = unit_price

        safe_commit(self._db, "update cart item")
        self._db.refresh(item)
        diner_logger.info(
            "Cart item details updated",
            item_id=item_id,
            addon_ids=[a.id for a in selected],
        )
        return item

    @rollback_on_error
    def remove_item(self, item_id: int, session_token: str) -> None:
        self._owned_item(item_id, session_token)
        self._carts.delete_items([item_id])
        safe_commit(self._db, "remove cart item")
        diner_logger.info("Cart item removed", item_id=item_id, session=mask_token(session_token))

    @rollback_on_error
    def clear_cart(self, table_id: int, session_token: str) -> None:
        """Drop the table's cart with all lines. A missing cart is a no-op."""
        self._locks.lock_for_session(table_id, session_token, claim=False)
        purged = self._carts.purge(self._carts.ids_for_tables([table_id]))
        safe_commit(self._db, "clear cart")
        diner_logger.info("Cart cleared", table_id=table_id, carts_purged=purged)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_cart(self, table_id: int, session_token: str | None) -> CartOutput:
        """Cart contents with display text and rounded totals."""
        self._locks.require_access(table_id, session_token)
        cart = self._carts.find_by_table(table_id)
        if cart is None:
            return CartOutput(table_id=table_id, totals=totals_output(compute_totals([])))

        items = [cart_item_output(item) for item in cart.items]
        exact = compute_totals(
            line_subtotal(item.unit_price, item.quantity) for item in cart.items
        )
        return CartOutput(
            table_id=table_id,
            cart_id=cart.id,
            created_at=cart.created_at,
            items=items,
            totals=totals_output(exact),
        )

    def cart_summary(self, table_id: int, session_token: str | None) -> CartSummaryOutput:
        self._locks.require_access(table_id, session_token)
        cart = self._carts.find_by_table(table_id)
        if cart is None:
            return CartSummaryOutput(has_cart=False)
        return CartSummaryOutput(
            has_cart=True,
            created_at=cart.created_at,
            item_count=sum(item.quantity for item in cart.items),
        )

    def totals(self, cart_id: int) -> CartTotals:
        """
        Exact totals of a cart.

        tax is subtotal times the tax rate and total is subtotal plus tax,
        both unrounded. Call .rounded() for display values.
        """
        if self._db.get(Cart, cart_id) is None:
            raise NotFoundError("Cart", cart_id)
        rows = self._db.execute(
            select(CartItem.unit_price, CartItem.quantity).where(CartItem.cart_id == cart_id)
        ).all()
        return compute_totals(line_subtotal(price, qty) for price, qty in rows)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _owned_item(self, item_id: int, session_token: str) -> CartItem:
        item = self._carts.find_item(item_id)
        if item is None:
            raise NotFoundError("Cart item", item_id)
        self._locks.lock_for_session(item.cart.table_id, session_token, claim=False)
        return item

    def _available_menu_item(self, menu_item_id: str) -> MenuItem:
        menu_item = self._db.get(MenuItem, menu_item_id)
        if menu_item is None:
            raise NotFoundError("Menu item", menu_item_id)
        if not menu_item.is_available:
            raise ValidationError(
                f"{menu_item.name} is currently unavailable",
                menu_item_id=menu_item_id,
            )
        return menu_item

    def _resolve_addons(self, menu_item: MenuItem, addon_ids: Iterable[int]) -> list[Addon]:
        """
        Load and check a selection of add-ons for a menu item.

        Raises ConflictViolationError when any two selected add-ons are
        mutually exclusive.
        """
        ids = sorted(set(addon_ids))
        if not ids:
            return []

        found = {
            a.id: a
            for a in self._db.scalars(select(Addon).where(Addon.id.in_(ids))).all()
        }
        for addon_id in ids:
            addon = found.get(addon_id)
            if addon is None:
                raise NotFoundError("Add-on", addon_id)
            if addon.menu_item_id != menu_item.id:
                raise ValidationError(
                    f"Add-on {addon_id} does not belong to {menu_item.id}",
                    addon_id=addon_id,
                    menu_item_id=menu_item.id,
                )
            if not addon.is_available:
                raise ValidationError(
                    f"{addon.name} is currently unavailable",
                    addon_id=addon_id,
                )

        pairs = self._addons.find_conflicting_pairs(ids)
        if pairs:
            raise ConflictViolationError(pairs, menu_item_id=menu_item.id)
        return [found[i] for i in ids]


def _unit_price(menu_item: MenuItem, addons: Sequence[Addon]) -> Decimal:
    return Decimal(menu_item.price) + sum((Decimal(a.price) for a in addons), Decimal("0"))


def _matching_line(
    lines: Iterable[CartItem],
    menu_item_id: str,
    instructions: str | None,
    unit_price: Decimal,
    addon_ids: frozenset[int],
) -> CartItem | None:
    """The line a new selection merges into: same item, price, instructions and add-ons."""
    return next(
        (
            line
            for line in lines
            if line.menu_item_id == menu_item_id
            and line.instructions == instructions
            and Decimal(line.unit_price) == unit_price
            and frozenset(a.addon_id for a in line.addons) == addon_ids
        ),
        None,
    )


def _check_quantity(quantity: int) -> None:
    if not 1 <= quantity <= Limits.MAX_QUANTITY:
        raise ValidationError(
            f"Quantity must be between 1 and {Limits.MAX_QUANTITY}",
            field="quantity",
            value=quantity,
        )


def cart_item_output(item: CartItem) -> CartItemOutput:
    return CartItemOutput(
        id=item.id,
        menu_item_id=item.menu_item_id,
        menu_item_name=item.menu_item.name,
        quantity=item.quantity,
        unit_price=item.unit_price,
        subtotal=line_subtotal(item.unit_price, item.quantity),
        instructions=item.instructions,
        addons=[AddonSelectionOutput.model_validate(a) for a in item.addons],
        addons_display=format_addons(item.addons),
    )
