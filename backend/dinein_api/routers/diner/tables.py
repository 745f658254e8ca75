"""
Table availability and occupancy for diners.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import AcquireTableRequest, TableAccessOutput, TableOutput
from dinein_api.routers._common import get_session_token
from dinein_api.services.domain import TableLockService


router = APIRouter(prefix="/api/tables", tags=["diner-tables"])


@router.get("", response_model=list[TableOutput])
def list_tables(db: Session = Depends(get_db)) -> list[TableOutput]:
    """Availability board: every table ordered by number."""
    return [TableOutput.model_validate(t) for t in TableLockService(db).list_tables()]


@router.get("/{table_id}/access", response_model=TableAccessOutput)
def table_access(
    table_id: int,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> TableAccessOutput:
    """Whether the calling session may use the table. Never refreshes occupancy."""
    table_status = TableLockService(db).table_status(table_id, session_token)
    return TableAccessOutput(**asdict(table_status))


@router.post("/{table_id}/acquire", response_model=TableAccessOutput)
def acquire_table(
    table_id: int,
    body: AcquireTableRequest,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> TableAccessOutput:
    """
    Occupy a table for the calling session.

    Re-acquiring a table the session already holds updates the party size.
    Returns 409 when another session holds the table.
    """
    service = TableLockService(db)
    service.acquire_ownership(table_id, session_token, body.pax)
    return TableAccessOutput(**asdict(service.table_status(table_id, session_token)))


@router.post("/{table_id}/release", status_code=status.HTTP_204_NO_CONTENT)
def release_table(
    table_id: int,
    db: Session = Depends(get_db),
    session_token: str | None = Depends(get_session_token),
) -> None:
    """Leave the table. The cart is discarded; placed orders are kept."""
    TableLockService(db).release_ownership(table_id, session_token)
