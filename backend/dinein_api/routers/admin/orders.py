"""
Order settlement endpoints for staff.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    MarkPaidOutput,
    MarkPaidRequest,
    OrderOutput,
    OrderStatusLiteral,
    PendingPaymentGroupOutput,
    SettleOrderRequest,
)
from dinein_api.services.domain import OrderService, order_output


router = APIRouter(tags=["admin-orders"])


@router.get("/orders", response_model=list[OrderOutput])
def list_orders(
    status: OrderStatusLiteral | None = Query(default=None, description="Filter by order status"),
    limit: int | None = Query(default=None, ge=1, le=1000, description="Newest N orders"),
    db: Session = Depends(get_db),
) -> list[OrderOutput]:
    """Transaction history: all orders with lines, payments and table number, newest first."""
    return OrderService(db).list_orders(status=status, limit=limit)


@router.get("/orders/pending-payment", response_model=list[PendingPaymentGroupOutput])
def pending_payments(db: Session = Depends(get_db)) -> list[PendingPaymentGroupOutput]:
    """Orders awaiting counter payment, grouped by table."""
    return OrderService(db).pending_payment_groups()


@router.post("/orders/mark-paid", response_model=MarkPaidOutput)
def mark_paid(body: MarkPaidRequest, db: Session = Depends(get_db)) -> MarkPaidOutput:
    """
    Complete a batch of Pending Payment orders.

    All or nothing: if any id is unknown or not awaiting payment, no order
    changes and the response is 400.
    """
    return MarkPaidOutput(updated=OrderService(db).mark_paid(body.order_ids))


@router.get("/orders/{order_id}", response_model=OrderOutput)
def get_order(order_id: int, db: Session = Depends(get_db)) -> OrderOutput:
    return OrderService(db).get_order(order_id)


@router.post("/orders/{order_id}/settle", response_model=OrderOutput)
def settle_order(
    order_id: int,
    body: SettleOrderRequest,
    db: Session = Depends(get_db),
) -> OrderOutput:
    order = OrderService(db).settle_order(order_id, body.payment_method, card=body.card)
    return order_output(order)


@router.post("/orders/{order_id}/cancel", response_model=OrderOutput)
def cancel_order(order_id: int, db: Session = Depends(get_db)) -> OrderOutput:
    return order_output(OrderService(db).cancel_order(order_id))


@router.delete("/orders/items/{order_item_id}", response_model=OrderOutput)
def remove_order_item(order_item_id: int, db: Session = Depends(get_db)) -> OrderOutput:
    """Remove a line from an open order. Returns the repriced order."""
    return order_output(OrderService(db).remove_order_item(order_item_id))
