"""
Table management endpoints for staff.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    CreateTableRequest,
    OrderOutput,
    StaffAddItemRequest,
    TableOutput,
)
from dinein_api.services.domain import OrderService, TableLockService, order_output


router = APIRouter(tags=["admin-tables"])


@router.get("/tables", response_model=list[TableOutput])
def list_tables(db: Session = Depends(get_db)) -> list[TableOutput]:
    return [TableOutput.model_validate(t) for t in TableLockService(db).list_tables()]


@router.post("/tables", response_model=TableOutput, status_code=status.HTTP_201_CREATED)
def create_table(body: CreateTableRequest, db: Session = Depends(get_db)) -> TableOutput:
    table = TableLockService(db).create_table(body.number)
    return TableOutput.model_validate(table)


@router.post("/tables/{table_id}/clear", status_code=status.HTTP_204_NO_CONTENT)
def clear_table(table_id: int, db: Session = Depends(get_db)) -> None:
    """Free the table whoever holds it and drop its cart. Orders are kept."""
    TableLockService(db).force_release(table_id)


@router.get("/tables/{table_id}/orders", response_model=list[OrderOutput])
def table_orders(table_id: int, db: Session = Depends(get_db)) -> list[OrderOutput]:
    """Complete order history of a table."""
    return OrderService(db).list_for_table(table_id)


@router.post(
    "/tables/{table_id}/items",
    response_model=OrderOutput,
    status_code=status.HTTP_201_CREATED,
)
def add_staff_item(
    table_id: int,
    body: StaffAddItemRequest,
    db: Session = Depends(get_db),
) -> OrderOutput:
    """Add an item to the table's open (Pending) order, opening one if needed."""
    order = OrderService(db).add_staff_item(table_id, body.menu_item_id, body.quantity)
    return order_output(order)
