"""
One-time wide-window catch-up run on the first observed block.

The gate is an explicit state object injected into the engine. Its
NotStarted -> Started transition is a check-and-set with no await in between,
so ticks that arrive before the catch-up finishes cannot start a second run.
A failed catch-up is logged and not retried; the gate stays Started.

Usage:
    gate = CatchUpGate()
    catch_up = HistoricalCatchUp(reconciler, gate, lookback_blocks=7000)
    if catch_up.try_begin():
        asyncio.create_task(catch_up.run(block, after=tick_tasks))
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from bot_logging.logger_manager import setup_module_logger
from shared.constants import DEFAULT_LOOKBACK_BLOCKS
from shared.types import CATCH_UP_STREAMS, Block, BlockRange, CatchUpState, StreamKind

if TYPE_CHECKING:
    from core.reconciler import StreamReconciler


class CatchUpGate:
    """Process-lifetime NotStarted -> Started flag."""

    def __init__(self) -> None:
        self._state = CatchUpState.NOT_STARTED

    @property
    def state(self) -> CatchUpState:
        return self._state

    def try_start(self) -> bool:
        """Transition to Started. True only for the caller that performed the transition."""
        if self._state is CatchUpState.STARTED:
            return False
        self._state = CatchUpState.STARTED
        return True


class HistoricalCatchUp:
    """Reconciles exchange fills and swap fills over [n - lookback, n] once."""

    def __init__(
        self,
        reconciler: StreamReconciler,
        gate: CatchUpGate,
        lookback_blocks: int = DEFAULT_LOOKBACK_BLOCKS,
        streams: Sequence[StreamKind] = CATCH_UP_STREAMS,
    ) -> None:
        self._reconciler = reconciler
        self._gate = gate
        self._lookback_blocks = lookback_blocks
        self._streams = tuple(streams)
        self._logger = setup_module_logger(
            "catch_up", "catch_up.log", module_folder="Catch_Up_Logs"
        )

    @property
    def gate(self) -> CatchUpGate:
        return self._gate

    def try_begin(self) -> bool:
        return self._gate.try_start()

    async def run(self, block: Block, after: Iterable[asyncio.Future] = ()) -> dict[StreamKind, int]:
        """
        Wait for `after` (the tick's own reconciliation tasks) to settle, then
        reconcile every catch-up stream over the lookback window.

        Returns the number of records dispatched per stream; failed streams
        are logged and omitted.
        """
        pending = [f for f in after if not f.done()]
        if pending:
            # failures of the tick's tasks are logged where they are spawned
            await asyncio.wait(pending)

        block_range = BlockRange.ending_at(block.number, self._lookback_blocks)
        self._logger.info(
            "Catch-up started at block %d over [%d, %d] for %s",
            block.number,
            block_range.from_block,
            block_range.to_block,
            ", ".join(kind.value for kind in self._streams),
        )

        results = await asyncio.gather(
            *(self._reconciler.reconcile(kind, block_range) for kind in self._streams),
            return_exceptions=True,
        )

        dispatched: dict[StreamKind, int] = {}
        for kind, result in zip(self._streams, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                self._logger.error(
                    "Catch-up for %s failed (not retried): %s", kind.value, result,
                    exc_info=result,
                )
                continue
            dispatched[kind] = len(result)
            self._logger.info("Catch-up for %s dispatched %d record(s)", kind.value, len(result))
        return dispatched
