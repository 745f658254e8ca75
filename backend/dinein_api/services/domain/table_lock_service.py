"""
Table Lock Domain Service.

Grants and revokes exclusive occupancy of a table to one diner session.
Every ownership change is a single conditional UPDATE on the table row
(compare-and-set), so the check and the write can never be split by a
concurrent request or sweeper tick.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, or_, select, update
from sqlalchemy.orm import Session

from shared.config.logging import diner_logger, admin_logger, mask_token
from shared.config.settings import settings
from shared.infrastructure.db import rollback_on_error, safe_commit
from shared.utils.clock import Clock, utcnow
from shared.utils.exceptions import (
    DuplicateEntityError,
    NotFoundError,
    NotOwnerError,
    TableUnavailableError,
    ValidationError,
)
from dinein_api.models import Table
from dinein_api.repositories import get_cart_repository


@dataclass(frozen=True)
class TableStatus:
    """What a session may do with a table right now."""

    table_id: int
    number: int
    is_occupied: bool
    can_access: bool
    is_owned_by_session: bool
    pax: int
    occupied_at: datetime | None


def _reset_values() -> dict:
    return {
        "is_occupied": False,
        "pax": 0,
        "owner_session_token": None,
        "occupied_at": None,
    }


class TableLockService:
    """
    Domain service for table ownership.

    Routine reads never touch occupied_at: only acquisition (and pax
    changes, which are acquisitions) refresh it, so idle tables age out.
    """

    def __init__(self, db: Session, clock: Clock = utcnow):
        self._db = db
        self._clock = clock

    # =========================================================================
    # Ownership
    # =========================================================================

    @rollback_on_error
    def acquire_ownership(self, table_id: int, session_token: str, pax: int) -> Table:
        """
        Occupy a table for a session.

        Succeeds when the table is free or already held by the same token
        (re-acquire updates pax and refreshes occupied_at).

        Raises:
            ValidationError: empty token or pax outside 1..max_pax
            NotFoundError: table does not exist
            TableUnavailableError: held by another session
        """
        _require_token(session_token)
        if not 1 <= pax <= settings.max_pax:
            raise ValidationError(
                f"Number of guests must be between 1 and {settings.max_pax}",
                field="pax",
                value=pax,
            )

        result = self._db.execute(
            update(Table)
            .where(
                Table.id == table_id,
                or_(
                    Table.owner_session_token.is_(None),
                    Table.owner_session_token == session_token,
                ),
            )
            .values(
                is_occupied=True,
                owner_session_token=session_token,
                pax=pax,
                occupied_at=self._clock(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self._db.rollback()
            if self._db.get(Table, table_id) is None:
                raise NotFoundError("Table", table_id)
            raise TableUnavailableError(table_id, session=mask_token(session_token))

        safe_commit(self._db, "acquire table")
        diner_logger.info(
            "Table acquired",
            table_id=table_id,
            pax=pax,
            session=mask_token(session_token),
        )
        return self._fresh(table_id)

    @rollback_on_error
    def release_ownership(self, table_id: int, session_token: str) -> None:
        """
        Give a table back. The table's cart is deleted in the same transaction.

        Raises:
            NotFoundError: table does not exist
            NotOwnerError: token does not hold the table (free tables included)
        """
        _require_token(session_token)
        result = self._db.execute(
            update(Table)
            .where(Table.id == table_id, Table.owner_session_token == session_token)
            .values(**_reset_values())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self._db.rollback()
            if self._db.get(Table, table_id) is None:
                raise NotFoundError("Table", table_id)
            raise NotOwnerError(table_id, session=mask_token(session_token))

        carts = get_cart_repository(self._db)
        purged = carts.purge(carts.ids_for_tables([table_id]))
        safe_commit(self._db, "release table")

        diner_logger.info(
            "Table released",
            table_id=table_id,
            carts_purged=purged,
            session=mask_token(session_token),
        )

    def lock_for_session(
        self,
        table_id: int,
        session_token: str,
        claim: bool = True,
    ) -> Table:
        """
        Claim or confirm a table inside the caller's transaction. Does not commit.

        Used by cart and checkout operations before they write. The row is
        written (and so locked) even when nothing changes. A free table is
        claimed for the session (pax 1) so a cart always belongs to an
        occupied table; with claim=False a free table is returned untouched.
        A table the session already holds is confirmed without refreshing
        occupied_at.

        Raises:
            NotFoundError: table does not exist
            NotOwnerError: held by another session
        """
        _require_token(session_token)
        was_free = Table.owner_session_token.is_(None)
        if claim:
            owned_or_free = or_(was_free, Table.owner_session_token == session_token)
        else:
            owned_or_free = Table.owner_session_token == session_token
        result = self._db.execute(
            update(Table)
            .where(Table.id == table_id, owned_or_free)
            .values(
                is_occupied=True,
                owner_session_token=session_token,
                pax=case((was_free, 1), else_=Table.pax),
                occupied_at=case((was_free, self._clock()), else_=Table.occupied_at),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            table = self._fresh(table_id)
            if table is None:
                raise NotFoundError("Table", table_id)
            if not claim and table.owner_session_token is None:
                return table
            raise NotOwnerError(table_id, session=mask_token(session_token))
        return self._fresh(table_id)

    def require_access(self, table_id: int, session_token: str | None) -> Table:
        """Read-only access check for queries. Never writes."""
        table = self._db.get(Table, table_id)
        if table is None:
            raise NotFoundError("Table", table_id)
        if not _can_access(table, session_token):
            raise NotOwnerError(table_id, session=mask_token(session_token))
        return table

    # =========================================================================
    # Queries
    # =========================================================================

    def check_access(self, table_id: int, session_token: str | None) -> bool:
        """True if the table is free or held by the token. False for a missing table."""
        table = self._db.get(Table, table_id)
        if table is None:
            return False
        return _can_access(table, session_token)

    def table_status(self, table_id: int, session_token: str | None) -> TableStatus:
        table = self._db.get(Table, table_id)
        if table is None:
            raise NotFoundError("Table", table_id)
        return TableStatus(
            table_id=table.id,
            number=table.number,
            is_occupied=table.is_occupied,
            can_access=_can_access(table, session_token),
            is_owned_by_session=bool(session_token)
            and table.owner_session_token == session_token,
            pax=table.pax,
            occupied_at=table.occupied_at,
        )

    def list_tables(self) -> list[Table]:
        """All tables ordered by number (availability board)."""
        return list(self._db.scalars(select(Table).order_by(Table.number)).all())

    # =========================================================================
    # Staff operations
    # =========================================================================

    @rollback_on_error
    def create_table(self, number: int) -> Table:
        """Provision a new, free table."""
        if number <= 0:
            raise ValidationError("Table number must be positive", field="number", value=number)
        existing = self._db.scalar(select(Table.id).where(Table.number == number))
        if existing is not None:
            raise DuplicateEntityError("Table", str(number))

        table = Table(number=number, is_occupied=False, pax=0)
        self._db.add(table)
        safe_commit(self._db, "create table")
        self._db.refresh(table)

        admin_logger.info("Table created", table_id=table.id, number=number)
        return table

    @rollback_on_error
    def force_release(self, table_id: int) -> None:
        """
        Staff "clear table": drop the cart and free the table whoever holds it.

        Orders, including unpaid ones, are kept.
        """
        result = self._db.execute(
            update(Table)
            .where(Table.id == table_id)
            .values(**_reset_values())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Table", table_id)

        carts = get_cart_repository(self._db)
        purged = carts.purge(carts.ids_for_tables([table_id]))
        safe_commit(self._db, "clear table")

        admin_logger.info("Table force released", table_id=table_id, carts_purged=purged)

    def _fresh(self, table_id: int) -> Table:
        return self._db.scalar(
            select(Table)
            .where(Table.id == table_id)
            .execution_options(populate_existing=True)
        )


def _require_token(session_token: str | None) -> None:
    if not session_token:
        raise ValidationError("Session token is required", field="session_token")


def _can_access(table: Table, session_token: str | None) -> bool:
    if table.owner_session_token is None:
        return True
    return bool(session_token) and table.owner_session_token == session_token
