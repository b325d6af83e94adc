"""
Collaborator interfaces consumed by the sync engine.

The state collaborator owns every mutable set (known identifiers, known
blocks, tracked wallets). The engine only reads snapshots through StateView
and hands new data back through DispatchSink.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from shared.types import Block, EventRecord, StreamKind


class StateView(Protocol):
    def known_identifiers(self, kind: StreamKind) -> Iterable[str]: ...

    def known_block_numbers(self) -> Iterable[int]: ...

    def tracked_addresses(self) -> Iterable[str]: ...

    def latest_block(self) -> Block | None: ...


class DispatchSink(Protocol):
    async def dispatch_batch(self, kind: StreamKind, records: Sequence[EventRecord]) -> None: ...

    async def dispatch_blocks(self, blocks: Sequence[Block]) -> None: ...
