"""
Tests for TableLockService.

Tests cover:
- Acquire, re-acquire and contention
- Release by owner and by strangers
- lock_for_session claim/confirm semantics
- Staff force release
- Occupancy invariant after every operation
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from dinein_api.models import Cart, CartItem, Order, Table
from dinein_api.services.domain import CartService, TableLockService
from shared.utils.exceptions import (
    DuplicateEntityError,
    NotFoundError,
    NotOwnerError,
    TableUnavailableError,
    ValidationError,
)
from tests.helpers import naive_utc


ALICE = "session-alice"
BOB = "session-bob"


def assert_lock_consistent(table: Table) -> None:
    """Occupied exactly when an owner is set; occupied_at set exactly when occupied."""
    assert table.is_occupied == (table.owner_session_token is not None)
    assert (table.occupied_at is not None) == table.is_occupied


class TestAcquireOwnership:
    """Tests for acquire_ownership."""

    def test_acquire_free_table(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)

        table = service.acquire_ownership(table5.id, ALICE, pax=2)

        assert table.is_occupied is True
        assert table.owner_session_token == ALICE
        assert table.pax == 2
        assert naive_utc(table.occupied_at) == naive_utc(clock.now)
        assert_lock_consistent(table)

    def test_reacquire_by_owner_updates_pax_and_refreshes_time(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=2)

        later = clock.advance(minutes=10)
        table = service.acquire_ownership(table5.id, ALICE, pax=4)

        assert table.pax == 4
        assert table.owner_session_token == ALICE
        assert naive_utc(table.occupied_at) == naive_utc(later)

    def test_acquire_held_by_other_session_is_unavailable(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=2)

        with pytest.raises(TableUnavailableError) as exc_info:
            service.acquire_ownership(table5.id, BOB, pax=3)

        assert exc_info.value.status_code == 409
        table = db_session.get(Table, table5.id)
        assert table.owner_session_token == ALICE
        assert table.pax == 2

    def test_acquire_missing_table(self, db_session, seed_tables, clock):
        with pytest.raises(NotFoundError):
            TableLockService(db_session, clock).acquire_ownership(9999, ALICE, pax=2)

    @pytest.mark.parametrize("pax", [0, -1, 21])
    def test_acquire_rejects_pax_out_of_range(self, db_session, table5, clock, pax):
        with pytest.raises(ValidationError):
            TableLockService(db_session, clock).acquire_ownership(table5.id, ALICE, pax=pax)

        table = db_session.get(Table, table5.id)
        assert table.is_occupied is False

    def test_acquire_requires_token(self, db_session, table5, clock):
        with pytest.raises(ValidationError):
            TableLockService(db_session, clock).acquire_ownership(table5.id, "", pax=2)

    def test_second_session_wins_after_release(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=2)
        service.release_ownership(table5.id, ALICE)

        table = service.acquire_ownership(table5.id, BOB, pax=1)

        assert table.owner_session_token == BOB


class TestReleaseOwnership:
    """Tests for release_ownership."""

    def test_release_resets_table_and_drops_cart(
        self, db_session, table5, seed_menu_item, clock
    ):
        CartService(db_session, clock).add_item(table5.id, ALICE, seed_menu_item.id, quantity=2)

        TableLockService(db_session, clock).release_ownership(table5.id, ALICE)

        table = db_session.get(Table, table5.id)
        assert table.is_occupied is False
        assert table.pax == 0
        assert table.owner_session_token is None
        assert table.occupied_at is None
        assert db_session.scalars(select(Cart)).all() == []
        assert db_session.scalars(select(CartItem)).all() == []

    def test_release_by_non_owner_is_rejected(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=2)

        with pytest.raises(NotOwnerError) as exc_info:
            service.release_ownership(table5.id, BOB)

        assert exc_info.value.status_code == 403
        table = db_session.get(Table, table5.id)
        assert table.owner_session_token == ALICE
        assert_lock_consistent(table)

    def test_release_of_free_table_is_rejected(self, db_session, table5, clock):
        with pytest.raises(NotOwnerError):
            TableLockService(db_session, clock).release_ownership(table5.id, ALICE)

    def test_release_keeps_orders(self, db_session, table5, seed_menu_item, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=2)
        db_session.add(
            Order(
                table_id=table5.id,
                order_type="Dine-In",
                status="Completed",
                total_amount=Decimal("10.60"),
                order_date=clock(),
            )
        )
        db_session.commit()

        service.release_ownership(table5.id, ALICE)

        assert len(db_session.scalars(select(Order)).all()) == 1


class TestAccessChecks:
    """Tests for check_access, table_status and lock_for_session."""

    def test_free_table_is_accessible_to_anyone(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        assert service.check_access(table5.id, ALICE) is True
        assert service.check_access(table5.id, None) is True

    def test_held_table_is_accessible_only_to_owner(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=2)

        assert service.check_access(table5.id, ALICE) is True
        assert service.check_access(table5.id, BOB) is False
        assert service.check_access(table5.id, None) is False

    def test_missing_table_is_not_accessible(self, db_session, seed_tables, clock):
        assert TableLockService(db_session, clock).check_access(9999, ALICE) is False

    def test_status_does_not_refresh_occupied_at(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=2)
        acquired_at = naive_utc(clock.now)

        clock.advance(minutes=20)
        status = service.table_status(table5.id, ALICE)
        service.check_access(table5.id, ALICE)

        assert status.is_owned_by_session is True
        assert status.can_access is True
        assert naive_utc(status.occupied_at) == acquired_at
        assert naive_utc(db_session.get(Table, table5.id).occupied_at) == acquired_at

    def test_status_for_stranger(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=3)

        status = service.table_status(table5.id, BOB)

        assert status.is_occupied is True
        assert status.can_access is False
        assert status.is_owned_by_session is False
        assert status.pax == 3

    def test_lock_for_session_claims_free_table(self, db_session, table5, clock):
        table = TableLockService(db_session, clock).lock_for_session(table5.id, ALICE)
        db_session.commit()

        assert table.owner_session_token == ALICE
        assert table.pax == 1
        assert naive_utc(table.occupied_at) == naive_utc(clock.now)
        assert_lock_consistent(table)

    def test_lock_for_session_keeps_owner_state(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=4)
        acquired_at = naive_utc(clock.now)

        clock.advance(minutes=5)
        table = service.lock_for_session(table5.id, ALICE)
        db_session.commit()

        assert table.pax == 4
        assert naive_utc(table.occupied_at) == acquired_at

    def test_lock_for_session_rejects_stranger(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=2)

        with pytest.raises(NotOwnerError):
            service.lock_for_session(table5.id, BOB)

    def test_lock_without_claim_leaves_free_table_free(self, db_session, table5, clock):
        table = TableLockService(db_session, clock).lock_for_session(
            table5.id, ALICE, claim=False
        )
        db_session.commit()

        assert table.is_occupied is False
        assert table.owner_session_token is None

    def test_lock_for_missing_table(self, db_session, seed_tables, clock):
        with pytest.raises(NotFoundError):
            TableLockService(db_session, clock).lock_for_session(9999, ALICE)


class TestStaffOperations:
    """Tests for create_table, list_tables and force_release."""

    def test_create_table(self, db_session, clock):
        table = TableLockService(db_session, clock).create_table(12)

        assert table.number == 12
        assert table.is_occupied is False
        assert_lock_consistent(table)

    def test_create_table_duplicate_number(self, db_session, table5, clock):
        with pytest.raises(DuplicateEntityError):
            TableLockService(db_session, clock).create_table(5)

    def test_list_tables_ordered_by_number(self, db_session, clock):
        service = TableLockService(db_session, clock)
        for number in (9, 2, 7):
            service.create_table(number)

        assert [t.number for t in service.list_tables()] == [2, 7, 9]

    def test_force_release_frees_table_held_by_anyone(
        self, db_session, table5, seed_menu_item, clock
    ):
        CartService(db_session, clock).add_item(table5.id, ALICE, seed_menu_item.id)

        TableLockService(db_session, clock).force_release(table5.id)

        table = db_session.get(Table, table5.id)
        assert table.is_occupied is False
        assert_lock_consistent(table)
        assert db_session.scalars(select(Cart)).all() == []

    def test_force_release_missing_table(self, db_session, seed_tables, clock):
        with pytest.raises(NotFoundError):
            TableLockService(db_session, clock).force_release(9999)

    def test_occupancy_ages_from_acquisition(self, db_session, table5, clock):
        service = TableLockService(db_session, clock)
        service.acquire_ownership(table5.id, ALICE, pax=2)
        start = naive_utc(clock.now)

        clock.advance(minutes=31)
        service.table_status(table5.id, ALICE)

        table = db_session.get(Table, table5.id)
        assert naive_utc(clock.now) - naive_utc(table.occupied_at) == timedelta(minutes=31)
        assert naive_utc(table.occupied_at) == start
