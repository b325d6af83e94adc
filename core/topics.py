"""
Log filter topic construction.

Pure helpers turning event ABIs and wallet addresses into eth_getLogs topic
filters. Indexed address arguments occupy a full 32-byte topic word, so
addresses are ABI-encoded (left-padded) before being placed in a slot.

Usage:
    from core.topics import build_erc20_transfer_topics

    topics = build_erc20_transfer_topics(["0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"])
    await fetcher.fetch_logs(None, transfer_spec.event_abi, topics.from_topics, n - 1, n)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from eth_abi import encode as abi_encode
from web3 import Web3

from shared.constants import ERC20_TRANSFER_SIGNATURE
from shared.errors import InvalidFilterInput
from shared.types import StreamSpec

# Topic filter: one entry per slot; a list in a slot means "any of these"
TopicFilter = list[Any]


@dataclass(frozen=True)
class TransferTopics:
    from_topics: TopicFilter
    to_topics: TopicFilter


def event_signature(event_abi: dict[str, Any]) -> str:
    """Canonical signature, e.g. Transfer(address,address,uint256)."""
    types = ",".join(inp["type"] for inp in event_abi.get("inputs", []))
    return f"{event_abi['name']}({types})"


def signature_topic(signature: str) -> str:
    return Web3.to_hex(Web3.keccak(text=signature))


def event_topic(event_abi: dict[str, Any]) -> str:
    """topic0 for an event ABI entry."""
    return signature_topic(event_signature(event_abi))


def address_topic(address: str) -> str:
    """Encode an address as a 32-byte indexed topic word."""
    return Web3.to_hex(abi_encode(["address"], [Web3.to_checksum_address(address)]))


def _unique_address_topics(addresses: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    words = []
    for address in addresses:
        word = address_topic(address)
        if word not in seen:
            seen.add(word)
            words.append(word)
    return words


def build_erc20_transfer_topics(
    addresses: Iterable[str],
    transfer_topic: str | None = None,
) -> TransferTopics:
    """
    Build the "from any of" and "to any of" Transfer filters for a wallet set.

    Raises InvalidFilterInput on an empty set: an unconstrained Transfer
    filter would match every token transfer on chain.
    """
    words = _unique_address_topics(addresses)
    if not words:
        raise InvalidFilterInput("Cannot build transfer topics for an empty address set")
    topic0 = transfer_topic or signature_topic(ERC20_TRANSFER_SIGNATURE)
    return TransferTopics(
        from_topics=[topic0, words],
        to_topics=[topic0, None, words],
    )


def build_maker_topics(spec: StreamSpec, address: str) -> TopicFilter:
    """Topic filter matching the stream's event where `address` is the maker."""
    if spec.maker_topic_index is None:
        raise InvalidFilterInput(f"Stream {spec.kind.value} has no maker topic slot")
    topics: TopicFilter = [spec.topic] + [None] * (spec.maker_topic_index - 1)
    topics.append(address_topic(address))
    return topics
