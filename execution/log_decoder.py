"""
Raw log -> EventRecord decoding against an event ABI entry.

Indexed arguments are read from topics[1:], the rest from the data field.
Address values are returned checksummed.
"""

from __future__ import annotations

from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import Web3

from shared.types import EventRecord


class LogDecodeError(ValueError):
    """Raised when a log does not match the shape of the event ABI."""


def to_hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(value).hex()


def _normalize(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        return Web3.to_checksum_address(value)
    if isinstance(value, bytes):
        return to_hex(value)
    return value


def decode_log(log: Any, event_abi: dict[str, Any]) -> EventRecord:
    """Decode one raw log (web3 AttributeDict or plain dict)."""
    inputs = event_abi.get("inputs", [])
    indexed = [inp for inp in inputs if inp.get("indexed")]
    non_indexed = [inp for inp in inputs if not inp.get("indexed")]

    topics = [HexBytes(t) for t in log["topics"]]
    if len(topics) != len(indexed) + 1:
        raise LogDecodeError(
            f"{event_abi['name']}: expected {len(indexed) + 1} topics, got {len(topics)}"
        )

    decoded: dict[str, Any] = {}
    try:
        for inp, topic in zip(indexed, topics[1:]):
            (value,) = abi_decode([inp["type"]], bytes(topic))
            decoded[inp["name"]] = _normalize(inp["type"], value)

        data = HexBytes(log.get("data") or b"")
        if non_indexed:
            values = abi_decode([inp["type"] for inp in non_indexed], bytes(data))
            for inp, value in zip(non_indexed, values):
                decoded[inp["name"]] = _normalize(inp["type"], value)
    except (DecodingError, ValueError, TypeError) as e:
        raise LogDecodeError(f"{event_abi['name']}: {e}") from e

    return EventRecord(
        transaction_hash=to_hex(log["transactionHash"]),
        block_number=int(log["blockNumber"]),
        log_index=int(log.get("logIndex", 0)),
        address=Web3.to_checksum_address(log["address"]),
        event_name=event_abi["name"],
        # keep ABI argument order
        values={inp["name"]: decoded[inp["name"]] for inp in inputs},
    )
