"""
Shared data types for Swap Event Sync.

Centralized dataclasses and enums used across all modules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class StreamKind(Enum):
    EXCHANGE_FILLS = "exchangeFills"  # legacy exchange Filled
    EXCHANGE_CANCELS = "exchangeCancels"  # legacy exchange Canceled
    EXCHANGE_FAILURES = "exchangeFailures"  # legacy exchange Failed
    SWAP_FILLS = "swapFills"  # Swap contract Swap
    SWAP_CANCELS = "swapCancels"  # Swap contract Cancel
    ERC20_TRANSFERS = "erc20Transfers"  # Transfer on any token


# Streams reconciled by contract + event topic on every tick
EVENT_STREAMS: tuple[StreamKind, ...] = (
    StreamKind.EXCHANGE_FILLS,
    StreamKind.EXCHANGE_CANCELS,
    StreamKind.EXCHANGE_FAILURES,
    StreamKind.SWAP_FILLS,
    StreamKind.SWAP_CANCELS,
)

# Streams covered by the one-time wide catch-up
CATCH_UP_STREAMS: tuple[StreamKind, ...] = (
    StreamKind.EXCHANGE_FILLS,
    StreamKind.SWAP_FILLS,
)


class CatchUpState(Enum):
    NOT_STARTED = "not_started"
    STARTED = "started"


# ---------------------------------------------------------------------------
# Chain Data Types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EventRecord:
    """One decoded log. transaction_hash is the dedup identifier within a stream."""

    transaction_hash: str
    block_number: int
    log_index: int
    address: str
    event_name: str
    values: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class Block:
    number: int
    hash: str = ""
    parent_hash: str = ""
    timestamp: int = 0


@dataclass(frozen=True)
class BlockRange:
    """Inclusive [from_block, to_block]."""

    from_block: int
    to_block: int

    def __post_init__(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError(f"Block range must be non-negative: {self}")
        if self.from_block > self.to_block:
            raise ValueError(f"from_block > to_block: {self}")

    @classmethod
    def ending_at(cls, block_number: int, width: int) -> BlockRange:
        """Range of `width` blocks back from block_number, clamped at genesis."""
        return cls(max(block_number - width, 0), block_number)


@dataclass(frozen=True)
class StreamSpec:
    kind: StreamKind
    contract_address: str | None  # None = no address filter
    event_name: str
    event_abi: dict[str, Any] = field(hash=False, compare=False)
    topic: str = ""  # topic0, keccak of the canonical signature
    maker_topic_index: int | None = None  # indexed slot holding the maker address
    deploy_block: int = 0


# ---------------------------------------------------------------------------
# Inbound Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NewBlockObserved:
    block: Block


@dataclass(frozen=True)
class HistoricalFetchRequested:
    kind: StreamKind
    address: str
