"""
In-memory state store for the sync engine.

Implements both sides of the engine's collaborator contract: the read-only
snapshot queries (known identifiers, known blocks, tracked wallets, latest
block) and the dispatch sink the engine hands new batches to.

Dispatch is idempotent. Events are keyed by (transaction_hash, log_index)
per stream and blocks by number, so redundant batches from overlapping
windows or concurrent backfills only overwrite identical entries.

Usage:
    store = EventStore(tracked_addresses=["0x..."])
    store.set_latest_block(block)
    fills = store.events_by_maker(StreamKind.SWAP_FILLS, "0x...")
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from web3 import Web3

from bot_logging.logger_manager import setup_module_logger
from shared.types import Block, EventRecord, StreamKind

# Decoded argument naming the maker, legacy exchange first
_MAKER_FIELDS = ("makerAddress", "signerWallet")


class EventStore:
    def __init__(self, tracked_addresses: Iterable[str] = ()) -> None:
        self._events: dict[StreamKind, dict[tuple[str, int], EventRecord]] = {
            kind: {} for kind in StreamKind
        }
        self._blocks: dict[int, Block] = {}
        self._tracked: dict[str, str] = {}
        self._latest_block: Block | None = None

        self._logger = setup_module_logger(
            "event_store", "event_store.log", module_folder="Event_Store_Logs"
        )

        for address in tracked_addresses:
            self.track_address(address)

    # ------------------------------------------------------------------
    # Read-only snapshot queries
    # ------------------------------------------------------------------

    def known_identifiers(self, kind: StreamKind) -> frozenset[str]:
        return frozenset(tx_hash for tx_hash, _ in self._events[kind])

    def known_block_numbers(self) -> frozenset[int]:
        return frozenset(self._blocks)

    def tracked_addresses(self) -> tuple[str, ...]:
        return tuple(self._tracked.values())

    def latest_block(self) -> Block | None:
        return self._latest_block

    # ------------------------------------------------------------------
    # Dispatch sink
    # ------------------------------------------------------------------

    async def dispatch_batch(self, kind: StreamKind, records: Sequence[EventRecord]) -> None:
        stored = self._events[kind]
        added = 0
        for record in records:
            key = (record.transaction_hash, record.log_index)
            if key not in stored:
                added += 1
            stored[key] = record
        self._logger.info(
            "%s: received %d record(s), %d new, %d total",
            kind.value,
            len(records),
            added,
            len(stored),
        )

    async def dispatch_blocks(self, blocks: Sequence[Block]) -> None:
        for block in blocks:
            self._blocks[block.number] = block
        self._logger.info("Stored %d block(s), %d total", len(blocks), len(self._blocks))

    # ------------------------------------------------------------------
    # Mutations outside the dispatch path
    # ------------------------------------------------------------------

    def set_latest_block(self, block: Block) -> None:
        """Record the chain head. Blocks become known only through dispatch_blocks."""
        if self._latest_block is None or block.number >= self._latest_block.number:
            self._latest_block = block

    def track_address(self, address: str) -> None:
        checksum = Web3.to_checksum_address(address)
        self._tracked[checksum.lower()] = checksum

    def untrack_address(self, address: str) -> None:
        self._tracked.pop(address.lower(), None)

    # ------------------------------------------------------------------
    # Selectors
    # ------------------------------------------------------------------

    def events(self, kind: StreamKind) -> list[EventRecord]:
        """Stored events for a stream in chain order."""
        return sorted(self._events[kind].values(), key=lambda r: (r.block_number, r.log_index))

    def events_by_maker(self, kind: StreamKind, address: str) -> list[EventRecord]:
        target = address.lower()
        result = []
        for record in self.events(kind):
            for field_name in _MAKER_FIELDS:
                maker = record.values.get(field_name)
                if maker is not None and maker.lower() == target:
                    result.append(record)
                    break
        return result

    def get_block(self, number: int) -> Block | None:
        return self._blocks.get(number)
