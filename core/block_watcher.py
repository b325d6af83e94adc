"""
Chain head polling loop.

Polls eth_blockNumber and, when the head advances, fetches every block in
(last_seen, head]. The blocks go to the dispatch sink as one batch, the head
is recorded in the store, and one NewBlockObserved per block is put on the
action queue in chain order, so no block between two polls escapes the
tick window.

Usage:
    watcher = BlockWatcher(fetcher, store, sink, action_queue, poll_interval_seconds=4)
    asyncio.create_task(watcher.run(), name="block_watcher")
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from bot_logging.logger_manager import setup_module_logger
from shared.constants import DEFAULT_BLOCK_POLL_INTERVAL_SECONDS
from shared.types import Block, NewBlockObserved

if TYPE_CHECKING:
    from core.event_store import EventStore
    from execution.log_fetcher import LogFetcher
    from shared.interfaces import DispatchSink


class BlockWatcher:
    def __init__(
        self,
        fetcher: LogFetcher,
        store: EventStore,
        sink: DispatchSink,
        action_queue: asyncio.Queue[Any],
        poll_interval_seconds: float = DEFAULT_BLOCK_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._sink = sink
        self._action_queue = action_queue
        self._poll_interval = poll_interval_seconds

        self._last_block_number: int | None = None
        self._running: bool = False

        self._logger = setup_module_logger(
            "block_watcher", "block_watcher.log", module_folder="Block_Watcher_Logs"
        )

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Main polling loop; designed to be launched as an asyncio.Task."""
        self._running = True
        self._logger.info("Block watcher started (interval %.1fs)", self._poll_interval)
        try:
            while self._running:
                try:
                    await self.poll_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    self._logger.error("Head poll failed: %s", exc)

                await asyncio.sleep(self._poll_interval)
        except asyncio.CancelledError:
            self._logger.info("Block watcher cancelled")
        finally:
            self._running = False

    def stop(self) -> None:
        """Signal the run loop to stop."""
        self._running = False

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_once(self) -> list[Block]:
        """
        Emit NewBlockObserved for every block since the last poll.

        The first poll reports only the current head. A failed block fetch
        emits nothing and leaves the last seen head unchanged, so the next
        poll retries the whole gap. Returns the new blocks, oldest first.
        """
        number = await self._fetcher.latest_block_number()
        last = self._last_block_number
        if last is not None and number <= last:
            return []

        first = number if last is None else last + 1
        if number - first > 0:
            self._logger.info(
                "Head jumped %d -> %d, catching up %d block(s)", last, number, number - first + 1
            )

        blocks = list(
            await asyncio.gather(*(self._fetcher.fetch_block(n) for n in range(first, number + 1)))
        )
        await self._sink.dispatch_blocks(blocks)
        self._store.set_latest_block(blocks[-1])
        for block in blocks:
            await self._action_queue.put(NewBlockObserved(block))

        self._last_block_number = number
        self._logger.debug("New head %d", number)
        return blocks
