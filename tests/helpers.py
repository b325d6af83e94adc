"""
Record/block factories and a scripted fake fetcher shared by the unit tests.
"""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

from shared.types import Block, EventRecord

SAMPLE_MAKER = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
SAMPLE_WALLET = "0x1234567890AbcdEF1234567890aBcdef12345678"


def make_record(
    tx_hash: str,
    block_number: int = 1000,
    log_index: int = 0,
    event_name: str = "Filled",
    values: dict[str, Any] | None = None,
) -> EventRecord:
    return EventRecord(
        transaction_hash=tx_hash,
        block_number=block_number,
        log_index=log_index,
        address="0x8fd3121013A07C57f0D69646E86E7a4880b467b7",
        event_name=event_name,
        values=values or {},
    )


def make_block(number: int) -> Block:
    return Block(number=number, hash=f"0x{number:064x}", parent_hash=f"0x{number - 1:064x}")


class FakeFetcher:
    """
    Scripted stand-in for LogFetcher.

    Logs are keyed by event name; ERC-20 legs by "Transfer:from" / "Transfer:to"
    (told apart by topic filter length). Every call is recorded in order.
    """

    def __init__(self) -> None:
        self.logs: dict[str, list[EventRecord]] = {}
        self.log_failures: dict[str, Exception] = {}
        self.block_failures: dict[int, Exception] = {}
        self.calls: list[tuple[str, Any, Any]] = []
        self.on_fetch = None  # optional hook run before a log fetch returns

        self.fetch_logs = AsyncMock(side_effect=self._fetch_logs)
        self.fetch_block = AsyncMock(side_effect=self._fetch_block)

    @staticmethod
    def key_for(event_abi: dict[str, Any], topics: list[Any]) -> str:
        name = event_abi["name"]
        if name == "Transfer":
            return "Transfer:from" if len(topics) == 2 else "Transfer:to"
        return name

    def log_calls(self) -> list[tuple[str, Any, Any]]:
        return [call for call in self.calls if call[0] != "block"]

    def block_calls(self) -> list[int]:
        return [call[1] for call in self.calls if call[0] == "block"]

    async def _fetch_logs(self, contract, event_abi, topics, from_block, to_block):
        key = self.key_for(event_abi, topics)
        self.calls.append((key, from_block, to_block))
        await asyncio.sleep(0)
        if self.on_fetch is not None:
            self.on_fetch(key)
        if key in self.log_failures:
            raise self.log_failures[key]
        return list(self.logs.get(key, []))

    async def _fetch_block(self, number):
        self.calls.append(("block", number, number))
        await asyncio.sleep(0)
        if number in self.block_failures:
            raise self.block_failures[number]
        return make_block(number)
