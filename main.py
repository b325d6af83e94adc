"""
Swap Event Sync main entrypoint.

Single-process asyncio runner that orchestrates two concurrent tasks:
    1. BlockWatcher: polls the chain head, emits NewBlockObserved
    2. SyncEngine:   reconciles every event stream per tick, backfills
                      referenced blocks, runs the one-time catch-up

Both communicate through a shared in-memory asyncio.Queue of actions.
Dispatched batches land in the in-memory EventStore and, when enabled,
are fanned out to Redis.

Usage:
    python main.py
    TRACKED_WALLET_ADDRESSES=0xabc...,0xdef... python main.py
    HISTORICAL_MAKER_ADDRESS=0xabc... python main.py   # also load full maker history
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Any

from dotenv import load_dotenv

from bot_logging.logger_manager import create_module_log_directories, setup_module_logger
from config.loader import get_config, get_env_var
from config.validate import ConfigValidationError, validate_all_configs
from shared.constants import (
    DEFAULT_ACTION_QUEUE_TIMEOUT_SECONDS,
    DEFAULT_BLOCK_POLL_INTERVAL_SECONDS,
    DEFAULT_CHAIN_ID,
    DEFAULT_LOOKBACK_BLOCKS,
    DEFAULT_NARROW_WINDOW_BLOCKS,
    DEFAULT_RPC_URL,
)

# ---------------------------------------------------------------------------
# Module logger (logged to logs/ root, no sub-folder)
# ---------------------------------------------------------------------------
_logger = setup_module_logger("main", "main.log")


# ---------------------------------------------------------------------------
# Startup banner
# ---------------------------------------------------------------------------


def _log_banner(
    rpc_url: str,
    tracked: list[str],
    lookback_blocks: int,
    narrow_window_blocks: int,
    publish_to_redis: bool,
) -> None:
    """Log a concise startup summary."""
    _logger.info("=" * 60)
    _logger.info("Swap Event Sync starting")
    _logger.info("=" * 60)
    _logger.info(
        "  rpc             : %s...%s", rpc_url[:25], rpc_url[-6:] if len(rpc_url) > 31 else ""
    )
    _logger.info("  tracked wallets : %d", len(tracked))
    _logger.info("  lookback blocks : %d", lookback_blocks)
    _logger.info("  tick window     : %d", narrow_window_blocks)
    _logger.info("  redis fan-out   : %s", publish_to_redis)
    _logger.info("=" * 60)


# ---------------------------------------------------------------------------
# Task done callback: detect unhandled exceptions
# ---------------------------------------------------------------------------


def _task_done_callback(
    task: asyncio.Task[None],
    shutdown_event: asyncio.Event,
) -> None:
    """Called when a core task finishes (normally or with error)."""
    try:
        exc = task.exception()
    except asyncio.CancelledError:
        _logger.info("Task %s cancelled", task.get_name())
        return

    if exc is not None:
        _logger.critical(
            "Task %s failed with unhandled exception: %s",
            task.get_name(),
            exc,
            exc_info=exc,
        )
        shutdown_event.set()


# ---------------------------------------------------------------------------
# Main async entry
# ---------------------------------------------------------------------------


async def _run() -> None:
    """Wire all components and launch the concurrent tasks."""
    # ------------------------------------------------------------------
    # 1. Load environment and validate configuration
    # ------------------------------------------------------------------
    load_dotenv()
    create_module_log_directories()

    try:
        validate_all_configs()
    except ConfigValidationError as exc:
        _logger.critical("Config validation failed:\n%s", exc)
        sys.exit(1)

    cfg = get_config()
    chain_cfg = cfg.get_chain_config(DEFAULT_CHAIN_ID)
    sync_cfg = cfg.get_sync_config()

    rpc_url: str = get_env_var(
        "ETH_RPC_URL_HTTP", chain_cfg.get("rpc", {}).get("http_url", DEFAULT_RPC_URL), str
    )
    tracked: list[str] = get_env_var("TRACKED_WALLET_ADDRESSES", [], list)
    historical_maker: str = get_env_var("HISTORICAL_MAKER_ADDRESS", "", str)
    publish_to_redis: bool = get_env_var("PUBLISH_TO_REDIS", False, bool)

    lookback_blocks = int(sync_cfg.get("lookback_blocks", DEFAULT_LOOKBACK_BLOCKS))
    narrow_window_blocks = int(sync_cfg.get("narrow_window_blocks", DEFAULT_NARROW_WINDOW_BLOCKS))
    poll_interval = float(
        sync_cfg.get("block_poll_interval_seconds", DEFAULT_BLOCK_POLL_INTERVAL_SECONDS)
    )
    queue_timeout = float(
        sync_cfg.get("action_queue_timeout_seconds", DEFAULT_ACTION_QUEUE_TIMEOUT_SECONDS)
    )

    _log_banner(rpc_url, tracked, lookback_blocks, narrow_window_blocks, publish_to_redis)

    # ------------------------------------------------------------------
    # 2. Initialize AsyncWeb3 provider (shared across all components)
    # ------------------------------------------------------------------
    from web3 import AsyncWeb3
    from web3.providers import AsyncHTTPProvider

    w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
    connected = await w3.is_connected()
    if not connected:
        _logger.critical("Cannot connect to RPC at %s", rpc_url)
        sys.exit(1)
    chain_id = await w3.eth.chain_id
    _logger.info("Connected to chain %d via %s", chain_id, rpc_url[:40])

    # ------------------------------------------------------------------
    # 3. Initialize shared instances (dependency order)
    # ------------------------------------------------------------------
    from core.backfill import BlockBackfiller
    from core.block_watcher import BlockWatcher
    from core.catch_up import CatchUpGate, HistoricalCatchUp
    from core.event_store import EventStore
    from core.reconciler import StreamReconciler
    from core.streams import load_stream_specs
    from core.sync_engine import SyncEngine
    from execution.log_fetcher import LogFetcher
    from shared.types import EVENT_STREAMS, HistoricalFetchRequested

    specs = load_stream_specs(DEFAULT_CHAIN_ID)
    store = EventStore(tracked_addresses=tracked)
    fetcher = LogFetcher(w3)

    sink: Any = store
    publisher = None
    if publish_to_redis:
        import redis.asyncio as redis

        from execution.redis_publisher import RedisBatchPublisher

        redis_url = get_env_var(
            "REDIS_URL",
            cfg.get_redis_channels().get("redis_url", "redis://localhost:6379/0"),
            str,
        )
        publisher = RedisBatchPublisher(store, redis.from_url(redis_url))
        sink = publisher

    backfiller = BlockBackfiller(fetcher, store, sink)
    reconciler = StreamReconciler(fetcher, store, sink, specs, backfiller)
    catch_up = HistoricalCatchUp(reconciler, CatchUpGate(), lookback_blocks=lookback_blocks)
    engine = SyncEngine(
        reconciler,
        catch_up,
        narrow_window_blocks=narrow_window_blocks,
        queue_timeout_seconds=queue_timeout,
    )

    action_queue: asyncio.Queue[Any] = asyncio.Queue()
    watcher = BlockWatcher(fetcher, store, sink, action_queue, poll_interval_seconds=poll_interval)

    if historical_maker:
        for kind in EVENT_STREAMS:
            await action_queue.put(HistoricalFetchRequested(kind, historical_maker))

    # ------------------------------------------------------------------
    # 4. Signal handling for graceful shutdown
    # ------------------------------------------------------------------
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(sig: signal.Signals) -> None:
        _logger.info("Received %s, initiating graceful shutdown", sig.name)
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    # ------------------------------------------------------------------
    # 5. Launch concurrent tasks
    # ------------------------------------------------------------------
    task_watcher = asyncio.create_task(watcher.run(), name="block_watcher")
    task_engine = asyncio.create_task(engine.run(action_queue), name="sync_engine")

    tasks = [task_watcher, task_engine]

    for t in tasks:
        t.add_done_callback(lambda done_task: _task_done_callback(done_task, shutdown_event))

    _logger.info("All tasks launched: block_watcher, sync_engine")

    # ------------------------------------------------------------------
    # 6. Wait for shutdown signal, then cancel tasks
    # ------------------------------------------------------------------
    try:
        await shutdown_event.wait()
    finally:
        _logger.info("Shutting down, cancelling tasks")

        watcher.stop()
        engine.stop()

        for t in tasks:
            if not t.done():
                t.cancel()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for t, result in zip(tasks, results, strict=False):
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                _logger.error("Task %s exited with error: %s", t.get_name(), result)

        # In-flight fetches are abandoned on shutdown
        await engine.cancel_pending()

        if publisher is not None:
            await publisher.close()
        _logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    """Synchronous entry point."""
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        _logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
