"""
Log and block fetch adapter over AsyncWeb3.

Normalizes eth_getLogs / eth_getBlockByNumber calls into decoded
EventRecords and Blocks. Transport errors are wrapped as FetchFailure and
never retried here; the caller decides what a failure means for its cycle.

Usage:
    from web3 import AsyncWeb3, AsyncHTTPProvider
    from execution.log_fetcher import LogFetcher

    w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
    fetcher = LogFetcher(w3)
    records = await fetcher.fetch_logs(contract, event_abi, [topic0], n - 1, n)
"""

from __future__ import annotations

from typing import Any

from web3 import AsyncWeb3, Web3

from bot_logging.logger_manager import setup_module_logger
from execution.log_decoder import LogDecodeError, decode_log, to_hex
from shared.errors import FetchFailure
from shared.types import Block, EventRecord

BlockIdentifier = int | str


class LogFetcher:
    """
    Async fetch boundary shared by the reconcilers and the block backfiller.

    Accepts an AsyncWeb3 instance via dependency injection so the same
    connection can be shared with the block watcher.
    """

    def __init__(self, w3: AsyncWeb3) -> None:
        self._w3 = w3
        self._logger = setup_module_logger(
            "log_fetcher", "log_fetcher.log", module_folder="Log_Fetcher_Logs"
        )

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def fetch_logs(
        self,
        contract_address: str | None,
        event_abi: dict[str, Any],
        topics: list[Any],
        from_block: BlockIdentifier,
        to_block: BlockIdentifier,
    ) -> list[EventRecord]:
        """
        Fetch and decode logs for one event over an inclusive block range.

        contract_address=None means no address filter (e.g. ERC-20 transfers
        across all tokens). Returns an empty list when nothing matches.
        """
        params: dict[str, Any] = {
            "fromBlock": from_block,
            "toBlock": to_block,
            "topics": topics,
        }
        if contract_address is not None:
            params["address"] = Web3.to_checksum_address(contract_address)

        try:
            raw_logs = await self._w3.eth.get_logs(params)
        except Exception as e:
            self._logger.error(
                "get_logs failed for %s %s [%s, %s]: %s",
                event_abi.get("name"),
                contract_address or "*",
                from_block,
                to_block,
                e,
            )
            raise FetchFailure(f"get_logs failed for {event_abi.get('name')}: {e}") from e

        records = []
        for raw in raw_logs or []:
            try:
                records.append(decode_log(raw, event_abi))
            except LogDecodeError as e:
                # Same topic0 with a different indexed layout (e.g. ERC-721 Transfer)
                self._logger.debug("Skipping undecodable log: %s", e)

        self._logger.debug(
            "Fetched %d %s logs in [%s, %s]",
            len(records),
            event_abi.get("name"),
            from_block,
            to_block,
        )
        return records

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    async def fetch_block(self, block_identifier: BlockIdentifier) -> Block:
        """Fetch a block header by number (or 'latest')."""
        try:
            raw = await self._w3.eth.get_block(block_identifier)
        except Exception as e:
            self._logger.error("get_block failed for %s: %s", block_identifier, e)
            raise FetchFailure(f"get_block failed for {block_identifier}: {e}") from e

        return Block(
            number=int(raw["number"]),
            hash=to_hex(raw["hash"]) if raw.get("hash") is not None else "",
            parent_hash=to_hex(raw["parentHash"]) if raw.get("parentHash") is not None else "",
            timestamp=int(raw.get("timestamp", 0)),
        )

    async def latest_block_number(self) -> int:
        try:
            return int(await self._w3.eth.block_number)
        except Exception as e:
            self._logger.error("block_number failed: %s", e)
            raise FetchFailure(f"block_number failed: {e}") from e
