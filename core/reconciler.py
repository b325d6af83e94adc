"""
Per-stream fetch / dedup / dispatch cycles.

One reconcile call covers one stream over one block range and dispatches at
most one batch. The known-identifier snapshot is taken before the fetch is
awaited, so a batch another stream dispatches mid-flight never changes this
cycle's outcome.

Usage:
    reconciler = StreamReconciler(fetcher, store, store, specs, backfiller)
    await reconciler.reconcile(StreamKind.SWAP_FILLS, BlockRange(n - 1, n))
    await reconciler.reconcile_erc20_transfers(BlockRange(n - 1, n))
    await reconciler.fetch_historical(StreamKind.EXCHANGE_FILLS, maker_address)
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from bot_logging.logger_manager import get_dispatch_audit_logger, setup_module_logger
from core.dedup import dedup
from core.topics import build_erc20_transfer_topics, build_maker_topics
from shared.errors import InvalidFilterInput
from shared.types import EVENT_STREAMS, BlockRange, EventRecord, StreamKind, StreamSpec

if TYPE_CHECKING:
    from core.backfill import BlockBackfiller
    from execution.log_fetcher import LogFetcher
    from shared.interfaces import DispatchSink, StateView


class StreamReconciler:
    """Fetches one stream's logs, drops known ones, and hands the rest to the sink."""

    def __init__(
        self,
        fetcher: LogFetcher,
        state: StateView,
        sink: DispatchSink,
        specs: Mapping[StreamKind, StreamSpec],
        backfiller: BlockBackfiller | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._state = state
        self._sink = sink
        self._specs = specs
        self._backfiller = backfiller

        self._logger = setup_module_logger(
            "reconciler", "reconciler.log", module_folder="Reconciler_Logs"
        )
        self._audit = get_dispatch_audit_logger()

    # ------------------------------------------------------------------
    # Event streams
    # ------------------------------------------------------------------

    async def reconcile(self, kind: StreamKind, block_range: BlockRange) -> list[EventRecord]:
        """Run one cycle for an event stream. Returns the dispatched records."""
        if kind is StreamKind.ERC20_TRANSFERS:
            return await self.reconcile_erc20_transfers(block_range)

        spec = self._specs[kind]
        known = frozenset(self._state.known_identifiers(kind))
        logs = await self._fetcher.fetch_logs(
            spec.contract_address,
            spec.event_abi,
            [spec.topic],
            block_range.from_block,
            block_range.to_block,
        )
        new_records = dedup(logs, known)
        self._logger.debug(
            "%s [%d, %d]: fetched=%d new=%d",
            kind.value,
            block_range.from_block,
            block_range.to_block,
            len(logs),
            len(new_records),
        )
        if not new_records:
            return []

        await self._dispatch(kind, new_records, block_range)
        return new_records

    # ------------------------------------------------------------------
    # ERC-20 transfers
    # ------------------------------------------------------------------

    async def reconcile_erc20_transfers(self, block_range: BlockRange) -> list[EventRecord]:
        """
        Fetch transfers from and to every tracked wallet over the range.

        An empty tracked set performs no fetch. Both legs are dispatched as one
        batch whenever either is non-empty; the store drops repeats.
        """
        addresses = list(self._state.tracked_addresses())
        if not addresses:
            return []

        spec = self._specs[StreamKind.ERC20_TRANSFERS]
        topics = build_erc20_transfer_topics(addresses, spec.topic)
        from_logs, to_logs = await asyncio.gather(
            self._fetcher.fetch_logs(
                None, spec.event_abi, topics.from_topics,
                block_range.from_block, block_range.to_block,
            ),
            self._fetcher.fetch_logs(
                None, spec.event_abi, topics.to_topics,
                block_range.from_block, block_range.to_block,
            ),
        )
        logs = [*from_logs, *to_logs]
        if not logs:
            return []

        await self._dispatch(StreamKind.ERC20_TRANSFERS, logs, block_range)
        return logs

    # ------------------------------------------------------------------
    # Historical by maker address
    # ------------------------------------------------------------------

    async def fetch_historical(self, kind: StreamKind, address: str) -> list[EventRecord]:
        """Fetch a stream's whole history for one maker address and dispatch what is new."""
        if kind not in EVENT_STREAMS:
            raise InvalidFilterInput(f"Historical fetch is not supported for {kind.value}")

        spec = self._specs[kind]
        topics = build_maker_topics(spec, address)
        latest = self._state.latest_block()
        to_block: int | str = latest.number if latest is not None else "latest"
        if isinstance(to_block, int) and to_block < spec.deploy_block:
            self._logger.info(
                "Historical %s skipped: head %d is before deploy block %d",
                kind.value,
                to_block,
                spec.deploy_block,
            )
            return []

        known = frozenset(self._state.known_identifiers(kind))
        logs = await self._fetcher.fetch_logs(
            spec.contract_address, spec.event_abi, topics, spec.deploy_block, to_block
        )
        new_records = dedup(logs, known)
        self._logger.info(
            "Historical %s for %s: fetched=%d new=%d",
            kind.value,
            address,
            len(logs),
            len(new_records),
        )
        if not new_records:
            return []

        block_range = None
        if isinstance(to_block, int):
            block_range = BlockRange(spec.deploy_block, to_block)
        await self._dispatch(kind, new_records, block_range)
        return new_records

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(
        self,
        kind: StreamKind,
        records: Sequence[EventRecord],
        block_range: BlockRange | None,
    ) -> None:
        await self._sink.dispatch_batch(kind, records)
        self._audit.info(
            "dispatched %s batch",
            kind.value,
            extra={
                "stream": kind.value,
                "record_count": len(records),
                "from_block": block_range.from_block if block_range else None,
                "to_block": block_range.to_block if block_range else None,
            },
        )
        if self._backfiller is not None and kind in EVENT_STREAMS:
            await self._backfiller.backfill(records)
