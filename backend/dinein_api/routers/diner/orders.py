"""
Checkout and order history for diners.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import CheckoutRequest, OrderOutput
from dinein_api.routers._common import get_session_token
from dinein_api.services.domain import OrderService, order_output


router = APIRouter(prefix="/api", tags=["diner-orders"])


@router.post(
    "/tables/{table_id}/checkout",
    response_model=OrderOutput,
    status_code=status.HTTP_201_CREATED,
)
def checkout(
    table_id: int,
    body: CheckoutRequest,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> OrderOutput:
    """
    Turn the table's cart into an order with one payment.

    Pay at Counter leaves the order in Pending Payment until staff settle
    it; card payments complete the order at once. The table stays occupied.
    """
    order = OrderService(db).finalize_from_cart(
        table_id,
        session_token,
        body.payment_method,
        card=body.card,
    )
    return order_output(order)


@router.get("/tables/{table_id}/orders", response_model=list[OrderOutput])
def table_orders(
    table_id: int,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> list[OrderOutput]:
    """Orders placed during the calling session's occupancy of the table."""
    return OrderService(db).table_history(table_id, session_token)


@router.get("/orders/{order_id}", response_model=OrderOutput)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> OrderOutput:
    return OrderService(db).get_order_for_session(order_id, session_token)
