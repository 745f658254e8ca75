"""
Timeout sweepers for idle carts and abandoned tables.

Two periodic tasks run inside the API process:
- cart sweep: deletes carts older than CART_TIMEOUT_MINUTES
- table sweep: frees tables occupied longer than TABLE_TIMEOUT_MINUTES,
  unless the table still has an order waiting for counter payment

Each tick opens its own session, runs to completion, and commits. A tick
that raises is logged and the schedule continues. Ticks of one sweeper
never overlap: an overrunning tick makes the loop skip the ticks it
missed, and run_once refuses to start while another run is in progress.

This processor can run:
1. As a FastAPI background task (lifespan startup)
2. Manually, one tick at a time (run_once), from tests or a shell
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from shared.config.constants import OrderStatus
from shared.config.logging import sweeper_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal, safe_commit
from shared.utils.clock import Clock, utcnow
from dinein_api.models import Order, Table
from dinein_api.repositories import get_cart_repository

SweepFn = Callable[[Session, datetime, timedelta], int]


# =============================================================================
# Sweep passes
# =============================================================================


def sweep_expired_carts(db: Session, now: datetime, timeout: timedelta) -> int:
    """
    Delete carts created before now - timeout, whatever the table state.

    Returns the number of carts removed. A second run with no new carts
    removes nothing.
    """
    carts = get_cart_repository(db)
    expired = carts.find_expired_ids(now - timeout)
    if not expired:
        return 0
    removed = carts.purge(expired)
    safe_commit(db, "cart sweep")
    logger.info("Expired carts removed", count=removed, cart_ids=expired)
    return removed


def _abandoned_predicate(cutoff: datetime) -> list:
    owes_money = (
        select(Order.id)
        .where(
            Order.table_id == Table.id,
            Order.status == OrderStatus.PENDING_PAYMENT,
        )
        .exists()
    )
    return [
        Table.is_occupied.is_(True),
        Table.occupied_at < cutoff,
        ~owes_money,
    ]


def sweep_abandoned_tables(db: Session, now: datetime, timeout: timedelta) -> int:
    """
    Free tables occupied since before now - timeout with no unpaid order.

    Each table is reset by an UPDATE that repeats the whole selection
    predicate, so a table re-acquired (or given a Pending Payment order)
    after selection is left alone. The cart goes in the same transaction.

    Returns the number of tables freed.
    """
    cutoff = now - timeout
    candidates = db.scalars(
        select(Table.id).where(*_abandoned_predicate(cutoff)).order_by(Table.id)
    ).all()
    # End the read transaction; each table is reset in its own one
    db.rollback()

    carts = get_cart_repository(db)
    freed = 0
    for table_id in candidates:
        result = db.execute(
            update(Table)
            .where(Table.id == table_id, *_abandoned_predicate(cutoff))
            .values(
                is_occupied=False,
                pax=0,
                owner_session_token=None,
                occupied_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            continue
        carts.purge(carts.ids_for_tables([table_id]))
        safe_commit(db, "table sweep")
        freed += 1
        logger.info("Abandoned table released", table_id=table_id)
    return freed


# =============================================================================
# Periodic runner
# =============================================================================


class TimeoutSweeper:
    """
    Runs one sweep pass on a fixed-rate schedule.

    The first tick runs immediately on start. A pass runs in a worker
    thread with its own session, so the event loop keeps serving requests.
    stop() sets the stop signal and cancels the task; a pass already in its
    thread still ends in a commit or a rollback, never half way.
    """

    def __init__(
        self,
        name: str,
        sweep_fn: SweepFn,
        timeout: timedelta,
        interval_seconds: float,
        session_factory: Callable[[], Session] = SessionLocal,
        clock: Clock = utcnow,
    ):
        self.name = name
        self._sweep_fn = sweep_fn
        self._timeout = timeout
        self._interval = interval_seconds
        self._session_factory = session_factory
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._tick_lock = asyncio.Lock()
        self.runs = 0
        self.failures = 0
        self.skipped_ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop."""
        if self.running:
            logger.warning("Sweeper already running", sweeper=self.name)
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(), name=f"sweeper-{self.name}")
        logger.info(
            "Sweeper started",
            sweeper=self.name,
            interval_seconds=self._interval,
            timeout_minutes=self._timeout.total_seconds() / 60,
        )

    async def stop(self) -> None:
        """Stop the sweep loop gracefully."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Sweeper stopped", sweeper=self.name, runs=self.runs)

    async def run_once(self) -> int | None:
        """
        Run a single sweep pass.

        Returns the number of reclaimed rows, or None when the pass failed
        or was skipped because another pass is in progress.
        """
        if self._tick_lock.locked():
            self.skipped_ticks += 1
            logger.warning("Sweep skipped, previous run still in progress", sweeper=self.name)
            return None

        async with self._tick_lock:
            self.runs += 1
            try:
                count = await asyncio.to_thread(self._sweep_in_session, self._clock())
            except Exception as e:
                self.failures += 1
                logger.error("Sweep failed", sweeper=self.name, error=str(e), exc_info=True)
                return None

        if count:
            logger.info("Sweep completed", sweeper=self.name, reclaimed=count)
        else:
            logger.debug("Sweep completed, nothing to reclaim", sweeper=self.name)
        return count

    def _sweep_in_session(self, now: datetime) -> int:
        db = self._session_factory()
        try:
            return self._sweep_fn(db, now, self._timeout)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _run_loop(self) -> None:
        """Fixed-rate loop. Missed ticks after an overrun are skipped, not queued."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self._stop_event.is_set():
            await self.run_once()

            next_tick += self._interval
            now = loop.time()
            if now >= next_tick:
                missed = int((now - next_tick) // self._interval) + 1
                next_tick += missed * self._interval
                self.skipped_ticks += missed
                logger.warning("Sweep overran its interval", sweeper=self.name, skipped=missed)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                pass


# =============================================================================
# Application wiring
# =============================================================================

_sweepers: list[TimeoutSweeper] | None = None


def build_sweepers(
    session_factory: Callable[[], Session] = SessionLocal,
    clock: Clock = utcnow,
) -> list[TimeoutSweeper]:
    """The cart and table sweepers configured from settings."""
    return [
        TimeoutSweeper(
            "cart",
            sweep_expired_carts,
            timedelta(minutes=settings.cart_timeout_minutes),
            settings.sweep_interval_seconds,
            session_factory,
            clock,
        ),
        TimeoutSweeper(
            "table",
            sweep_abandoned_tables,
            timedelta(minutes=settings.table_timeout_minutes),
            settings.sweep_interval_seconds,
            session_factory,
            clock,
        ),
    ]


def get_sweepers() -> list[TimeoutSweeper]:
    """Get the singleton sweeper instances."""
    global _sweepers
    if _sweepers is None:
        _sweepers = build_sweepers()
    return _sweepers


async def start_sweepers() -> None:
    """Start both sweepers (call in FastAPI lifespan startup)."""
    for sweeper in get_sweepers():
        await sweeper.start()


async def stop_sweepers() -> None:
    """Stop both sweepers (call in FastAPI lifespan shutdown)."""
    for sweeper in get_sweepers():
        await sweeper.stop()
