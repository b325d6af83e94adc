"""
Unit tests for core/block_watcher.py.

Tests cover head polling, gap coverage when several blocks land between
polls, block dispatch through the sink (including the Redis fan-out), and
the run loop.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.backfill import BlockBackfiller
from core.block_watcher import BlockWatcher
from core.catch_up import CatchUpGate, HistoricalCatchUp
from core.reconciler import StreamReconciler
from core.sync_engine import SyncEngine
from execution.redis_publisher import RedisBatchPublisher
from shared.errors import FetchFailure
from shared.types import BlockRange, NewBlockObserved, StreamKind

from tests.helpers import make_block, make_record


@pytest.fixture
def queue():
    return asyncio.Queue()


@pytest.fixture
def watcher(fetcher, store, queue):
    fetcher.latest_block_number = AsyncMock(return_value=100)
    return BlockWatcher(fetcher, store, store, queue, poll_interval_seconds=0.01)


def _drain_queue(queue):
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


class TestPollOnce:

    async def test_first_poll_emits_head_only(self, watcher, store, queue):
        blocks = await watcher.poll_once()

        assert blocks == [make_block(100)]
        assert store.latest_block() == make_block(100)
        assert _drain_queue(queue) == [NewBlockObserved(make_block(100))]

    async def test_unchanged_head_emits_nothing(self, watcher, fetcher, queue):
        await watcher.poll_once()
        _drain_queue(queue)

        assert await watcher.poll_once() == []
        assert queue.empty()
        assert fetcher.block_calls() == [100]

    async def test_head_jump_emits_every_skipped_block_in_order(self, watcher, fetcher, queue):
        await watcher.poll_once()
        _drain_queue(queue)
        fetcher.latest_block_number.return_value = 105

        await watcher.poll_once()

        assert [a.block.number for a in _drain_queue(queue)] == [101, 102, 103, 104, 105]
        assert sorted(fetcher.block_calls()) == [100, 101, 102, 103, 104, 105]

    async def test_head_blocks_reach_the_sink(self, watcher, fetcher, store):
        await watcher.poll_once()
        fetcher.latest_block_number.return_value = 102
        await watcher.poll_once()

        assert store.known_block_numbers() == frozenset({100, 101, 102})

    async def test_fetch_failure_retries_whole_gap(self, watcher, fetcher, store, queue):
        await watcher.poll_once()
        _drain_queue(queue)
        fetcher.latest_block_number.return_value = 103
        fetcher.block_failures[102] = FetchFailure("no block")

        with pytest.raises(FetchFailure):
            await watcher.poll_once()
        assert queue.empty()
        assert store.latest_block().number == 100

        del fetcher.block_failures[102]
        blocks = await watcher.poll_once()
        assert [b.number for b in blocks] == [101, 102, 103]


class TestHeadBlocksPublished:

    async def test_tick_path_publishes_blocks(self, fetcher, store, queue, stream_specs):
        client = MagicMock()
        client.publish = AsyncMock(return_value=1)
        fetcher.latest_block_number = AsyncMock(return_value=500)
        fetcher.logs["Swap"] = [make_record("0xfill", block_number=500, event_name="Swap")]

        with patch(
            "execution.redis_publisher.get_channel",
            side_effect=lambda key: f"sync:{key}",
        ):
            sink = RedisBatchPublisher(store, client)
            watcher = BlockWatcher(fetcher, store, sink, queue)
            reconciler = StreamReconciler(
                fetcher, store, sink, stream_specs, BlockBackfiller(fetcher, store, sink)
            )

            await watcher.poll_once()
            action = queue.get_nowait()
            await reconciler.reconcile(
                StreamKind.SWAP_FILLS, BlockRange.ending_at(action.block.number, 1)
            )

        channels = [call.args[0] for call in client.publish.await_args_list]
        assert channels == ["sync:blocks", "sync:swapFills"]
        blocks_body = json.loads(client.publish.await_args_list[0].args[1])
        assert [b["number"] for b in blocks_body["blocks"]] == [500]


class TestGapReconciliation:

    async def test_fill_in_skipped_block_is_reconciled(self, fetcher, store, queue, stream_specs):
        reconciler = StreamReconciler(fetcher, store, store, stream_specs)
        engine = SyncEngine(
            reconciler,
            HistoricalCatchUp(reconciler, CatchUpGate(), lookback_blocks=1),
            narrow_window_blocks=1,
        )
        fetcher.latest_block_number = AsyncMock(return_value=10_000)
        watcher = BlockWatcher(fetcher, store, store, queue)

        await watcher.poll_once()
        for action in _drain_queue(queue):
            engine.handle(action)
        await engine.drain()

        fetcher.logs["Filled"] = [make_record("0xgap", block_number=10_002)]
        fetcher.latest_block_number.return_value = 10_005
        await watcher.poll_once()
        for action in _drain_queue(queue):
            engine.handle(action)
        await engine.drain()

        fill_ranges = [(c[1], c[2]) for c in fetcher.log_calls() if c[0] == "Filled"]
        assert any(lo <= 10_002 <= hi for lo, hi in fill_ranges)
        assert [r.transaction_hash for r in store.events(StreamKind.EXCHANGE_FILLS)] == ["0xgap"]
        for n in range(10_001, 10_006):
            assert (n - 1, n) in fill_ranges


class TestRunLoop:

    async def test_run_survives_errors_and_stops(self, watcher, fetcher, queue):
        fetcher.latest_block_number.side_effect = [FetchFailure("down"), 200, 200, 201]
        task = asyncio.create_task(watcher.run())

        first = await asyncio.wait_for(queue.get(), timeout=1)
        second = await asyncio.wait_for(queue.get(), timeout=1)
        watcher.stop()
        await asyncio.wait_for(task, timeout=1)

        assert [first.block.number, second.block.number] == [200, 201]
