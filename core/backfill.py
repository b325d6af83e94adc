"""
Block backfill for dispatched event batches.

Every dispatched batch references block numbers; blocks the state store does
not hold yet are fetched (one request per block, concurrently) and dispatched
together once all of them resolve.

Concurrent triggers for overlapping blocks may fetch the same block twice.
The store overwrites blocks by number, so the duplicate is harmless.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

from bot_logging.logger_manager import setup_module_logger
from shared.types import Block, EventRecord

if TYPE_CHECKING:
    from execution.log_fetcher import LogFetcher
    from shared.interfaces import DispatchSink, StateView


class BlockBackfiller:
    def __init__(self, fetcher: LogFetcher, state: StateView, sink: DispatchSink) -> None:
        self._fetcher = fetcher
        self._state = state
        self._sink = sink
        self._logger = setup_module_logger(
            "backfill", "backfill.log", module_folder="Backfill_Logs"
        )

    def missing_block_numbers(self, records: Sequence[EventRecord]) -> list[int]:
        """Block numbers referenced by `records` and absent from known blocks, first-seen order."""
        known = frozenset(self._state.known_block_numbers())
        referenced = dict.fromkeys(record.block_number for record in records)
        return [number for number in referenced if number not in known]

    async def backfill(self, records: Sequence[EventRecord]) -> list[Block]:
        """
        Fetch and dispatch the blocks `records` reference but the store lacks.

        A failed fetch for any block fails the whole trigger and nothing is
        dispatched.
        """
        missing = self.missing_block_numbers(records)
        if not missing:
            return []

        try:
            blocks = await asyncio.gather(*(self._fetcher.fetch_block(n) for n in missing))
        except Exception as e:
            self._logger.error("Backfill of blocks %s failed: %s", missing, e)
            raise

        await self._sink.dispatch_blocks(list(blocks))
        self._logger.info("Backfilled %d block(s): %s", len(blocks), missing)
        return list(blocks)
