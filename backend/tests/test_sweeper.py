"""
Tests for the timeout sweepers.

Tests cover:
- Expired cart sweep (boundary on either side of the timeout)
- Abandoned table sweep, including the Pending Payment guard
- Idempotent passes
- The UPDATE re-checking its selection predicate
- TimeoutSweeper: failures, overlap guard, start/stop
"""

import asyncio
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from dinein_api.models import Cart, CartItem, Table
from dinein_api.services.domain import CartService, OrderService, TableLockService
from dinein_api.services.sweeper import (
    TimeoutSweeper,
    build_sweepers,
    sweep_abandoned_tables,
    sweep_expired_carts,
)
from shared.config.constants import PaymentMethod
from shared.config.settings import settings


ALICE = "session-alice"
BOB = "session-bob"
TIMEOUT = timedelta(minutes=30)


class _StaleCandidates:
    """Result stand-in for a candidate list read before other sessions wrote."""

    def __init__(self, ids):
        self._ids = ids

    def all(self):
        return self._ids


class TestCartSweep:
    """Tests for sweep_expired_carts."""

    def test_cart_past_timeout_is_removed(self, db_session, table5, seed_addons, clock):
        CartService(db_session, clock).add_item(
            table5.id, ALICE, "M001", quantity=2, addon_ids=[seed_addons[0].id]
        )
        db_session.commit()

        removed = sweep_expired_carts(db_session, clock.advance(minutes=31), TIMEOUT)

        assert removed == 1
        assert db_session.scalars(select(Cart)).all() == []
        assert db_session.scalars(select(CartItem)).all() == []

    def test_cart_inside_timeout_is_kept(self, db_session, table5, seed_menu_item, clock):
        CartService(db_session, clock).add_item(table5.id, ALICE, "M001")
        db_session.commit()

        removed = sweep_expired_carts(db_session, clock.advance(minutes=29), TIMEOUT)

        assert removed == 0
        assert len(db_session.scalars(select(Cart)).all()) == 1

    def test_cart_sweep_ignores_table_state(self, db_session, table5, seed_menu_item, clock):
        CartService(db_session, clock).add_item(table5.id, ALICE, "M001")
        db_session.commit()

        sweep_expired_carts(db_session, clock.advance(minutes=31), TIMEOUT)

        table = db_session.get(Table, table5.id)
        assert table.owner_session_token == ALICE

    def test_second_pass_removes_nothing(self, db_session, table5, seed_menu_item, clock):
        CartService(db_session, clock).add_item(table5.id, ALICE, "M001")
        db_session.commit()
        now = clock.advance(minutes=31)

        assert sweep_expired_carts(db_session, now, TIMEOUT) == 1
        assert sweep_expired_carts(db_session, now, TIMEOUT) == 0


class TestTableSweep:
    """Tests for sweep_abandoned_tables."""

    def test_abandoned_table_is_freed_with_its_cart(self, db_session, table5, seed_menu_item, clock):
        CartService(db_session, clock).add_item(table5.id, ALICE, "M001")
        db_session.commit()

        freed = sweep_abandoned_tables(db_session, clock.advance(minutes=31), TIMEOUT)

        assert freed == 1
        db_session.expire_all()
        table = db_session.get(Table, table5.id)
        assert table.is_occupied is False
        assert table.pax == 0
        assert table.owner_session_token is None
        assert table.occupied_at is None
        assert db_session.scalars(select(Cart)).all() == []

    def test_recent_table_is_kept(self, db_session, table5, clock):
        TableLockService(db_session, clock).acquire_ownership(table5.id, ALICE, pax=2)

        assert sweep_abandoned_tables(db_session, clock.advance(minutes=29), TIMEOUT) == 0

    def test_pending_payment_order_protects_table(self, db_session, table5, seed_menu_item, clock):
        CartService(db_session, clock).add_item(table5.id, ALICE, "M001")
        order = OrderService(db_session, clock).finalize_from_cart(
            table5.id, ALICE, PaymentMethod.PAY_AT_COUNTER
        )
        now = clock.advance(minutes=31)

        assert sweep_abandoned_tables(db_session, now, TIMEOUT) == 0
        db_session.expire_all()
        assert db_session.get(Table, table5.id).owner_session_token == ALICE

        OrderService(db_session, clock).mark_paid([order.id])

        assert sweep_abandoned_tables(db_session, now, TIMEOUT) == 1

    def test_open_staff_order_does_not_protect_table(self, db_session, table5, seed_menu_item, clock):
        CartService(db_session, clock).add_item(table5.id, ALICE, "M001")
        OrderService(db_session, clock).add_staff_item(table5.id, "M001", 1)

        assert sweep_abandoned_tables(db_session, clock.advance(minutes=31), TIMEOUT) == 1

    def test_second_pass_frees_nothing(self, db_session, table5, table6, clock):
        locks = TableLockService(db_session, clock)
        locks.acquire_ownership(table5.id, ALICE, pax=2)
        locks.acquire_ownership(table6.id, BOB, pax=2)
        now = clock.advance(minutes=45)

        assert sweep_abandoned_tables(db_session, now, TIMEOUT) == 2
        assert sweep_abandoned_tables(db_session, now, TIMEOUT) == 0

    def test_table_reacquired_after_selection_is_left_alone(
        self, db_session, table5, table6, clock
    ):
        locks = TableLockService(db_session, clock)
        locks.acquire_ownership(table5.id, ALICE, pax=2)
        locks.acquire_ownership(table6.id, BOB, pax=2)
        clock.advance(minutes=20)
        locks.acquire_ownership(table6.id, BOB, pax=3)
        now = clock.advance(minutes=15)

        real_scalars = db_session.scalars
        calls = []

        def stale_then_real(statement, *args, **kwargs):
            calls.append(statement)
            if len(calls) == 1:
                return _StaleCandidates([table5.id, table6.id])
            return real_scalars(statement, *args, **kwargs)

        db_session.scalars = stale_then_real
        try:
            freed = sweep_abandoned_tables(db_session, now, TIMEOUT)
        finally:
            del db_session.scalars

        assert freed == 1
        db_session.expire_all()
        assert db_session.get(Table, table5.id).is_occupied is False
        kept = db_session.get(Table, table6.id)
        assert kept.owner_session_token == BOB
        assert kept.pax == 3


class TestTimeoutSweeper:
    """Tests for the periodic runner."""

    @pytest.mark.asyncio
    async def test_run_once_uses_fresh_session(self, db_session, session_factory, table5, seed_menu_item, clock):
        CartService(db_session, clock).add_item(table5.id, ALICE, "M001")
        db_session.commit()
        sweeper = TimeoutSweeper(
            "cart", sweep_expired_carts, TIMEOUT, 60, session_factory, clock
        )

        clock.advance(minutes=31)
        reclaimed = await sweeper.run_once()

        assert reclaimed == 1
        assert sweeper.runs == 1
        db_session.expire_all()
        assert db_session.scalars(select(Cart)).all() == []

    @pytest.mark.asyncio
    async def test_failed_tick_is_counted_and_schedule_survives(self, clock):
        sweep_fn = MagicMock(side_effect=[RuntimeError("database is locked"), 3])
        session_factory = MagicMock()
        sweeper = TimeoutSweeper("cart", sweep_fn, TIMEOUT, 60, session_factory, clock)

        assert await sweeper.run_once() is None
        assert sweeper.failures == 1
        session_factory.return_value.rollback.assert_called_once()
        session_factory.return_value.close.assert_called()

        assert await sweeper.run_once() == 3
        assert sweeper.runs == 2
        assert sweeper.failures == 1

    @pytest.mark.asyncio
    async def test_overlapping_run_is_skipped(self, clock):
        sweep_fn = MagicMock(return_value=0)
        sweeper = TimeoutSweeper("table", sweep_fn, TIMEOUT, 60, MagicMock(), clock)

        async with sweeper._tick_lock:
            result = await sweeper.run_once()

        assert result is None
        assert sweeper.skipped_ticks == 1
        assert sweeper.runs == 0
        sweep_fn.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_runs_first_tick_and_stop_ends_loop(self, clock):
        sweep_fn = MagicMock(return_value=0)
        sweeper = TimeoutSweeper("cart", sweep_fn, TIMEOUT, 3600, MagicMock(), clock)

        await sweeper.start()
        assert sweeper.running is True
        for _ in range(100):
            if sweeper.runs:
                break
            await asyncio.sleep(0.01)

        await sweeper.stop()

        assert sweeper.runs == 1
        assert sweeper.running is False
        sweep_fn.assert_called_once()
        _, now, timeout = sweep_fn.call_args.args
        assert now == clock.now
        assert timeout == TIMEOUT

    @pytest.mark.asyncio
    async def test_stop_without_start(self, clock):
        sweeper = TimeoutSweeper("cart", MagicMock(), TIMEOUT, 60, MagicMock(), clock)
        await sweeper.stop()
        assert sweeper.running is False

    def test_build_sweepers_from_settings(self):
        cart, table = build_sweepers(session_factory=MagicMock())

        assert (cart.name, table.name) == ("cart", "table")
        assert cart._timeout == timedelta(minutes=settings.cart_timeout_minutes)
        assert table._timeout == timedelta(minutes=settings.table_timeout_minutes)
