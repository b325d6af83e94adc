"""
Tick dispatcher for the event sync engine.

Reacts to two inbound actions:
    NewBlockObserved(block)            narrow reconciliation of every stream
    HistoricalFetchRequested(kind, a)  full-history fetch for one maker

Each reconciliation runs as its own asyncio.Task. A failing task is logged by
its done-callback and never cancels or delays its siblings. The first tick
also schedules the one-time catch-up, which waits for that tick's tasks.

Usage:
    engine = SyncEngine(reconciler, catch_up)
    asyncio.create_task(engine.run(action_queue), name="sync_engine")
    await action_queue.put(NewBlockObserved(block))
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

from bot_logging.logger_manager import setup_module_logger
from shared.constants import DEFAULT_ACTION_QUEUE_TIMEOUT_SECONDS, DEFAULT_NARROW_WINDOW_BLOCKS
from shared.types import (
    EVENT_STREAMS,
    Block,
    BlockRange,
    HistoricalFetchRequested,
    NewBlockObserved,
    StreamKind,
)

if TYPE_CHECKING:
    from core.catch_up import HistoricalCatchUp
    from core.reconciler import StreamReconciler

Action = NewBlockObserved | HistoricalFetchRequested


class SyncEngine:
    """
    Fans out per-stream reconciliation on every new block.

    The engine holds no event state of its own. Everything it knows comes
    from the state snapshots each reconciler takes at fetch time.
    """

    def __init__(
        self,
        reconciler: StreamReconciler,
        catch_up: HistoricalCatchUp,
        narrow_window_blocks: int = DEFAULT_NARROW_WINDOW_BLOCKS,
        queue_timeout_seconds: float = DEFAULT_ACTION_QUEUE_TIMEOUT_SECONDS,
    ) -> None:
        self._reconciler = reconciler
        self._catch_up = catch_up
        self._narrow_window_blocks = narrow_window_blocks
        self._queue_timeout_seconds = queue_timeout_seconds

        self._pending: set[asyncio.Task[Any]] = set()
        self._running: bool = False

        self._logger = setup_module_logger(
            "sync_engine", "sync_engine.log", module_folder="Sync_Engine_Logs"
        )

    # ------------------------------------------------------------------
    # Inbound actions
    # ------------------------------------------------------------------

    def on_tick(self, block: Block) -> list[asyncio.Task[Any]]:
        """
        Start this tick's reconciliations without awaiting them.

        Must be called from a running event loop. Returns every task started,
        including the catch-up task on the first tick.
        """
        block_range = BlockRange.ending_at(block.number, self._narrow_window_blocks)
        tasks = [
            self._spawn(
                self._reconciler.reconcile(kind, block_range),
                f"reconcile:{kind.value}:{block.number}",
            )
            for kind in EVENT_STREAMS
        ]
        tasks.append(
            self._spawn(
                self._reconciler.reconcile_erc20_transfers(block_range),
                f"reconcile:{StreamKind.ERC20_TRANSFERS.value}:{block.number}",
            )
        )

        if self._catch_up.try_begin():
            self._logger.info("First tick at block %d, scheduling catch-up", block.number)
            tasks.append(
                self._spawn(
                    self._catch_up.run(block, after=list(tasks)),
                    f"catch_up:{block.number}",
                )
            )

        self._logger.debug("Tick %d: %d task(s) started", block.number, len(tasks))
        return tasks

    def on_historical_fetch_requested(self, kind: StreamKind, address: str) -> asyncio.Task[Any]:
        return self._spawn(
            self._reconciler.fetch_historical(kind, address),
            f"historical:{kind.value}:{address}",
        )

    def handle(self, action: Action) -> list[asyncio.Task[Any]]:
        """Route one inbound action to its handler."""
        if isinstance(action, NewBlockObserved):
            return self.on_tick(action.block)
        if isinstance(action, HistoricalFetchRequested):
            return [self.on_historical_fetch_requested(action.kind, action.address)]
        self._logger.warning("Unknown action type: %s", type(action).__name__)
        return []

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self, action_queue: asyncio.Queue[Action]) -> None:
        """Consume actions from the queue; designed to be launched as an asyncio.Task."""
        self._running = True
        self._logger.info("Sync engine started")
        try:
            while self._running:
                try:
                    action = await asyncio.wait_for(
                        action_queue.get(), timeout=self._queue_timeout_seconds
                    )
                except asyncio.TimeoutError:
                    self._logger.debug("No actions for %.0fs", self._queue_timeout_seconds)
                    continue

                try:
                    self.handle(action)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    self._logger.error("Failed to handle %s: %s", action, exc, exc_info=True)
        except asyncio.CancelledError:
            self._logger.info("Sync engine cancelled")
        finally:
            self._running = False

    def stop(self) -> None:
        """Signal the run loop to stop."""
        self._running = False

    async def drain(self) -> None:
        """Wait until every task started so far (and any they start) has finished."""
        while self._pending:
            await asyncio.wait(list(self._pending))

    async def cancel_pending(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*self._pending, return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Task bookkeeping
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        """Log the outcome of a finished reconciliation task."""
        self._pending.discard(task)
        try:
            exc = task.exception()
        except asyncio.CancelledError:
            self._logger.info("Task %s cancelled", task.get_name())
            return

        if exc is not None:
            self._logger.error(
                "Task %s failed: %s",
                task.get_name(),
                exc,
                exc_info=exc,
            )
