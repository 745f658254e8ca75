"""
Table cart endpoints.

The cart belongs to the table and is usable only by the session holding
it. Adding the first item to a free table claims the table.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    AddCartItemRequest,
    CartItemOutput,
    CartOutput,
    CartSummaryOutput,
    UpdateCartItemDetailsRequest,
    UpdateCartItemRequest,
)
from dinein_api.routers._common import get_session_token
from dinein_api.services.domain import CartService, cart_item_output


router = APIRouter(prefix="/api", tags=["diner-cart"])


# =============================================================================
# Table cart
# =============================================================================


@router.get("/tables/{table_id}/cart", response_model=CartOutput)
def get_cart(
    table_id: int,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> CartOutput:
    """Cart lines with add-on display text and rounded totals."""
    return CartService(db).get_cart(table_id, session_token)


@router.get("/tables/{table_id}/cart/summary", response_model=CartSummaryOutput)
def get_cart_summary(
    table_id: int,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> CartSummaryOutput:
    """Item count and creation time, used to warn before the cart expires."""
    return CartService(db).cart_summary(table_id, session_token)


@router.post(
    "/tables/{table_id}/cart/items",
    response_model=CartOutput,
    status_code=status.HTTP_201_CREATED,
)
def add_to_cart(
    table_id: int,
    body: AddCartItemRequest,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> CartOutput:
    """
    Add a menu item with its selected add-ons.

    Returns 409 if two selected add-ons cannot be combined.
    """
    service = CartService(db)
    service.add_item(
        table_id,
        session_token,
        body.menu_item_id,
        quantity=body.quantity,
        addon_ids=body.addon_ids,
        instructions=body.instructions,
    )
    return service.get_cart(table_id, session_token)


@router.delete("/tables/{table_id}/cart", status_code=status.HTTP_204_NO_CONTENT)
def clear_cart(
    table_id: int,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> None:
    CartService(db).clear_cart(table_id, session_token)


# =============================================================================
# Cart lines
# =============================================================================


@router.patch("/cart/items/{item_id}", response_model=CartItemOutput | None)
def update_cart_item(
    item_id: int,
    body: UpdateCartItemRequest,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> CartItemOutput | None:
    """Change a line's quantity. Zero or less removes it and returns null."""
    item = CartService(db).update_item(item_id, session_token, body.quantity)
    return cart_item_output(item) if item is not None else None


@router.put("/cart/items/{item_id}", response_model=CartItemOutput | None)
def replace_cart_item(
    item_id: int,
    body: UpdateCartItemDetailsRequest,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> CartItemOutput | None:
    """Replace quantity, instructions and add-ons. The line is repriced."""
    item = CartService(db).update_item_details(
        item_id,
        session_token,
        body.quantity,
        instructions=body.instructions,
        addon_ids=body.addon_ids,
    )
    return cart_item_output(item) if item is not None else None


@router.delete("/cart/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_cart_item(
    item_id: int,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> None:
    CartService(db).remove_item(item_id, session_token)
