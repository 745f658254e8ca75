"""
Order Domain Service.

Turns carts into orders, records payments and drives the order status
machine:

    Pending ──► Pending Payment ──► Completed
       │              │
       ├──────────────┼──► Completed
       └──────────────┴──► Cancelled

Every multi-row change (order, lines, payment, cart removal) is one
transaction committed through safe_commit.
"""

from collections.abc import Iterable
from itertools import groupby

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from shared.config.constants import ORDER_TRANSITIONS, OrderStatus, OrderType, PaymentMethod
from shared.config.logging import admin_logger, diner_logger, mask_token
from shared.infrastructure.db import rollback_on_error, safe_commit
from shared.utils.clock import Clock, utcnow
from shared.utils.exceptions import (
    InvalidBatchError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from shared.utils.money import compute_totals, line_subtotal, to_money
from shared.utils.schemas import (
    AddonSelectionOutput,
    CardDetails,
    OrderItemOutput,
    OrderOutput,
    PaymentOutput,
    PendingPaymentGroupOutput,
)
from shared.utils.validators import (
    validate_card_number,
    validate_cardholder_name,
    validate_cvv,
    validate_expiry,
)
from dinein_api.models import (
    MenuItem,
    Order,
    OrderItem,
    OrderItemAddon,
    Payment,
    Table,
)
from dinein_api.repositories import get_cart_repository, get_order_repository
from .cart_service import format_addons
from .table_lock_service import TableLockService


def status_for_payment(payment_method: str) -> str:
    """Counter payments wait for settlement; card payments complete at once."""
    if payment_method == PaymentMethod.PAY_AT_COUNTER:
        return OrderStatus.PENDING_PAYMENT
    return OrderStatus.COMPLETED


def check_transition(order: Order, to_status: str) -> None:
    if to_status not in ORDER_TRANSITIONS.get(order.status, frozenset()):
        raise InvalidTransitionError("order", order.status, to_status, order_id=order.id)


class OrderService:
    """Domain service for orders and payments."""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self._db = db
        self._clock = clock
        self._orders = get_order_repository(db)
        self._carts = get_cart_repository(db)
        self._locks = TableLockService(db, clock)

    # =========================================================================
    # Checkout
    # =========================================================================

    @rollback_on_error
    def finalize_from_cart(
        self,
        table_id: int,
        session_token: str,
        payment_method: str,
        card: CardDetails | None = None,
        user_id: int | None = None,
    ) -> Order:
        """
        Convert the table's cart into an order with exactly one payment.

        The order, its lines, the payment and the removal of the cart are
        committed together, or none of them are.

        Raises:
            NotFoundError: table missing
            NotOwnerError: table held by another session
            ValidationError: empty cart, unknown method, bad card details
        """
        now = self._clock()
        self._check_payment(payment_method, card)

        self._locks.lock_for_session(table_id, session_token)
        cart = self._carts.find_by_table(table_id)
        if cart is None or not cart.items:
            raise ValidationError("Your cart is empty", table_id=table_id)

        exact = compute_totals(line_subtotal(i.unit_price, i.quantity) for i in cart.items)
        order = Order(
            table_id=table_id,
            user_id=user_id,
            order_type=OrderType.DINE_IN,
            status=status_for_payment(payment_method),
            total_amount=exact.total,
            order_date=now,
        )
        for item in cart.items:
            order.items.append(
                OrderItem(
                    menu_item_id=item.menu_item_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=line_subtotal(item.unit_price, item.quantity),
                    instructions=item.instructions,
                    addons=[
                        OrderItemAddon(addon_id=a.addon_id, name=a.name, price=a.price)
                        for a in item.addons
                    ],
                )
            )
        order.payments.append(
            Payment(
                amount=exact.rounded().total,
                method=payment_method,
                payment_date=now,
            )
        )
        self._db.add(order)
        self._db.flush()

        self._carts.purge([cart.id])
        safe_commit(self._db, "place order")
        self._db.refresh(order)

        diner_logger.info(
            "Order placed",
            order_id=order.id,
            table_id=table_id,
            status=order.status,
            payment_method=payment_method,
            total=str(exact.rounded().total),
            session=mask_token(session_token),
        )
        return order

    def _check_payment(self, payment_method: str, card: CardDetails | None) -> None:
        if payment_method not in PaymentMethod.ALL:
            raise ValidationError(
                "Please select a payment method",
                field="payment_method",
                value=payment_method,
            )
        if payment_method not in PaymentMethod.CARD:
            return
        if card is None:
            raise ValidationError("Card details are required for card payments", field="card")
        try:
            validate_cardholder_name(card.cardholder_name)
            validate_card_number(card.card_number)
            validate_expiry(card.expiry_date, self._clock().date())
            validate_cvv(card.cvv)
        except ValueError as e:
            raise ValidationError(str(e), field="card") from e

    # =========================================================================
    # Counter settlement
    # =========================================================================

    @rollback_on_error
    def mark_paid(self, order_ids: Iterable[int]) -> list[int]:
        """
        Mark a batch of Pending Payment orders as Completed.

        All or nothing: if the batch is empty, has unknown ids, or has any
        order that is not Pending Payment, no order changes.
        """
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            raise InvalidBatchError("No valid order IDs provided")

        orders = self._db.scalars(
            select(Order).where(Order.id.in_(ids)).order_by(Order.id).with_for_update()
        ).all()
        found = {o.id for o in orders}
        missing = [i for i in ids if i not in found]
        if missing:
            raise InvalidBatchError("Some orders not found", ids=missing)

        not_pending = [o.id for o in orders if o.status != OrderStatus.PENDING_PAYMENT]
        if not_pending:
            raise InvalidBatchError(
                "Some orders are not in pending payment status: "
                + ", ".join(str(i) for i in not_pending),
                ids=not_pending,
            )

        for order in orders:
            order.status = OrderStatus.COMPLETED
        safe_commit(self._db, "mark orders paid")

        admin_logger.info("Orders marked as paid", order_ids=ids)
        return ids

    # =========================================================================
    # Staff path: open (Pending) orders
    # =========================================================================

    @rollback_on_error
    def add_staff_item(self, table_id: int, menu_item_id: str, quantity: int = 1) -> Order:
        """
        Append an item to the table's open order, creating it if needed.

        Lines merge by menu item and are repriced at the current menu price.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity", value=quantity)

        table = self._db.scalar(select(Table).where(Table.id == table_id).with_for_update())
        if table is None:
            raise NotFoundError("Table", table_id)
        menu_item = self._db.get(MenuItem, menu_item_id)
        if menu_item is None:
            raise NotFoundError("Menu item", menu_item_id)

        order = self._db.scalar(
            select(Order)
            .where(Order.table_id == table_id, Order.status == OrderStatus.PENDING)
            .order_by(Order.id)
            .with_for_update()
        )
        if order is None:
            order = Order(
                table_id=table_id,
                order_type=OrderType.DINE_IN,
                status=OrderStatus.PENDING,
                total_amount=0,
                order_date=self._clock(),
            )
            self._db.add(order)
            self._db.flush()

        line = next(
            (
                i
                for i in order.items
                if i.menu_item_id == menu_item_id and not i.addons and not i.instructions
            ),
            None,
        )
        if line is not None:
            line.quantity += quantity
            line.unit_price = menu_item.price
            line.subtotal = line_subtotal(menu_item.price, line.quantity)
        else:
            order.items.append(
                OrderItem(
                    menu_item_id=menu_item_id,
                    quantity=quantity,
                    unit_price=menu_item.price,
                    subtotal=line_subtotal(menu_item.price, quantity),
                )
            )

        self._db.flush()
        order.total_amount = compute_totals(i.subtotal for i in order.items).total
        safe_commit(self._db, "add order item")
        self._db.refresh(order)

        admin_logger.info(
            "Item added to open order",
            order_id=order.id,
            table_id=table_id,
            menu_item_id=menu_item_id,
            quantity=quantity,
        )
        return order

    @rollback_on_error
    def remove_order_item(self, order_item_id: int) -> Order:
        """Remove a line from an open order and recompute its total."""
        item = self._db.get(OrderItem, order_item_id)
        if item is None:
            raise NotFoundError("Order item", order_item_id)
        order = self._db.scalar(
            select(Order).where(Order.id == item.order_id).with_for_update()
        )
        if order.status != OrderStatus.PENDING:
            raise ValidationError(
                f"Items cannot be removed from a '{order.status}' order",
                order_id=order.id,
            )

        self._db.execute(
            delete(OrderItemAddon)
            .where(OrderItemAddon.order_item_id == order_item_id)
            .execution_options(synchronize_session=False)
        )
        self._db.delete(item)
        self._db.flush()

        remaining = self._db.scalars(
            select(OrderItem.subtotal).where(OrderItem.order_id == order.id)
        ).all()
        order.total_amount = compute_totals(remaining).total
        safe_commit(self._db, "remove order item")
        self._db.refresh(order)

        admin_logger.info("Order item removed", order_id=order.id, order_item_id=order_item_id)
        return order

    @rollback_on_error
    def settle_order(
        self,
        order_id: int,
        payment_method: str,
        card: CardDetails | None = None,
    ) -> Order:
        """Close an open staff order with a payment, like a checkout."""
        self._check_payment(payment_method, card)
        order = self._locked_order(order_id)
        to_status = status_for_payment(payment_method)
        if order.status != OrderStatus.PENDING:
            raise InvalidTransitionError("order", order.status, to_status, order_id=order_id)
        if not order.items:
            raise ValidationError("Order has no items", order_id=order_id)

        exact = compute_totals(i.subtotal for i in order.items)
        order.total_amount = exact.total
        order.status = to_status
        order.payments.append(
            Payment(amount=exact.rounded().total, method=payment_method, payment_date=self._clock())
        )
        safe_commit(self._db, "settle order")
        self._db.refresh(order)

        admin_logger.info(
            "Order settled",
            order_id=order_id,
            status=order.status,
            payment_method=payment_method,
        )
        return order

    @rollback_on_error
    def cancel_order(self, order_id: int) -> Order:
        """Administrative cancellation of a Pending or Pending Payment order."""
        order = self._locked_order(order_id)
        check_transition(order, OrderStatus.CANCELLED)
        order.status = OrderStatus.CANCELLED
        safe_commit(self._db, "cancel order")
        self._db.refresh(order)
        admin_logger.info("Order cancelled", order_id=order_id)
        return order

    def _locked_order(self, order_id: int) -> Order:
        order = self._db.scalar(select(Order).where(Order.id == order_id).with_for_update())
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    # =========================================================================
    # Queries
    # =========================================================================

    def get_order(self, order_id: int) -> OrderOutput:
        order = self._orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order_output(order)

    def get_order_for_session(self, order_id: int, session_token: str | None) -> OrderOutput:
        """Diner view of an order: the session must be able to use its table."""
        order = self._orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if order.table_id is not None:
            self._locks.require_access(order.table_id, session_token)
        return order_output(order)

    def table_history(self, table_id: int, session_token: str | None) -> list[OrderOutput]:
        """
        Orders placed at the table during the session's current occupancy.

        A session that does not hold the table sees nothing.
        """
        table = self._locks.require_access(table_id, session_token)
        if table.owner_session_token is None or table.owner_session_token != session_token:
            return []
        orders = self._orders.find_for_table(table_id, since=table.occupied_at)
        return [order_output(o) for o in orders]

    def list_for_table(self, table_id: int) -> list[OrderOutput]:
        """Full order history of a table (staff)."""
        if self._db.get(Table, table_id) is None:
            raise NotFoundError("Table", table_id)
        return [order_output(o) for o in self._orders.find_for_table(table_id)]

    def list_orders(
        self,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[OrderOutput]:
        """
        Staff transaction history: every order with its lines, payments and
        table number, newest first.

        Raises:
            ValidationError: unknown status or a limit below 1
        """
        if status is not None and status not in OrderStatus.ALL:
            raise ValidationError(
                f"Order status must be one of: {', '.join(OrderStatus.ALL)}",
                field="status",
                value=status,
            )
        if limit is not None and limit < 1:
            raise ValidationError("Limit must be at least 1", field="limit", value=limit)

        orders = self._orders.find_recent(status=status, limit=limit)
        numbers = self._table_numbers(orders)
        return [order_output(o, table_number=numbers.get(o.table_id)) for o in orders]

    def pending_payment_groups(self) -> list[PendingPaymentGroupOutput]:
        """
        Pending Payment orders grouped by table for counter settlement.

        Groups are ordered by their oldest order.
        """
        orders = sorted(
            self._orders.find_pending_payment(),
            key=lambda o: (o.table_id is None, o.table_id or 0, o.order_date, o.id),
        )
        numbers = self._table_numbers(orders)

        groups = []
        for table_id, members in groupby(orders, key=lambda o: o.table_id):
            members = list(members)
            first_payment = members[0].payments[0] if members[0].payments else None
            groups.append(
                PendingPaymentGroupOutput(
                    table_id=table_id,
                    table_number=numbers.get(table_id),
                    order_ids=[o.id for o in members],
                    items=[_item_output(i) for o in members for i in o.items],
                    total_amount=to_money(sum((o.total_amount for o in members), 0)),
                    first_order_date=min(o.order_date for o in members),
                    last_order_date=max(o.order_date for o in members),
                    payment_method=first_payment.method if first_payment else None,
                )
            )
        groups.sort(key=lambda g: g.first_order_date)
        return groups

    def _table_numbers(self, orders: Iterable[Order]) -> dict[int, int]:
        table_ids = {o.table_id for o in orders if o.table_id is not None}
        if not table_ids:
            return {}
        return dict(
            self._db.execute(
                select(Table.id, Table.number).where(Table.id.in_(table_ids))
            ).all()
        )

def _item_output(item: OrderItem) -> OrderItemOutput:
    return OrderItemOutput(
        id=item.id,
        menu_item_id=item.menu_item_id,
        menu_item_name=item.menu_item.name,
        quantity=item.quantity,
        unit_price=item.unit_price,
        subtotal=item.subtotal,
        instructions=item.instructions,
        addons=[AddonSelectionOutput.model_validate(a) for a in item.addons],
        addons_display=format_addons(item.addons),
    )


def order_output(order: Order, table_number: int | None = None) -> OrderOutput:
    return OrderOutput(
        id=order.id,
        table_id=order.table_id,
        table_number=table_number,
        user_id=order.user_id,
        order_type=order.order_type,
        status=order.status,
        total_amount=to_money(order.total_amount),
        order_date=order.order_date,
        items=[_item_output(i) for i in order.items],
        payments=[PaymentOutput.model_validate(p) for p in order.payments],
    )
