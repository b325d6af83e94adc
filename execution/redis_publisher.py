"""
Redis fan-out for dispatched batches.

Wraps a dispatch sink: every batch is first handed to the wrapped sink (the
state store), then published as JSON on its stream's Redis channel. Publish
failures are logged and do not fail the dispatch.

Usage:
    import redis.asyncio as redis

    client = redis.from_url(redis_url)
    sink = RedisBatchPublisher(store, client)
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import redis.asyncio as redis

from bot_logging.logger_manager import setup_module_logger
from config.loader import get_channel
from shared.constants import BLOCKS_CHANNEL_KEY
from shared.serialization_utils import to_json
from shared.types import Block, EventRecord, StreamKind

if TYPE_CHECKING:
    from shared.interfaces import DispatchSink


class RedisBatchPublisher:
    def __init__(self, sink: DispatchSink, client: redis.Redis) -> None:
        self._sink = sink
        self._client = client
        self._logger = setup_module_logger(
            "redis_publisher", "redis_publish.log", module_folder="Redis_Publisher_Logs"
        )

    async def dispatch_batch(self, kind: StreamKind, records: Sequence[EventRecord]) -> None:
        await self._sink.dispatch_batch(kind, records)
        await self._publish(
            get_channel(kind.value),
            {"stream": kind.value, "records": list(records)},
        )

    async def dispatch_blocks(self, blocks: Sequence[Block]) -> None:
        await self._sink.dispatch_blocks(blocks)
        await self._publish(get_channel(BLOCKS_CHANNEL_KEY), {"blocks": list(blocks)})

    async def _publish(self, channel: str, payload: dict[str, Any]) -> None:
        payload["_timestamp"] = datetime.now(timezone.utc).isoformat()
        payload["_source"] = "swap_event_sync"
        try:
            await self._client.publish(channel, to_json(payload))
            self._logger.debug("Published to %s", channel)
        except Exception as e:
            self._logger.error("Failed to publish to %s: %s", channel, e)

    async def close(self) -> None:
        await self._client.aclose()
