"""
Stream registry: maps each StreamKind to its contract, event ABI and topic.

Built from the `streams` section of the chain config plus the ABI files in
config/abis/.
"""

from __future__ import annotations

from typing import Any

from config.loader import ConfigLoader, get_config
from core.topics import event_topic
from shared.constants import DEFAULT_CHAIN_ID
from shared.types import StreamKind, StreamSpec


def _find_event(abi: list[dict[str, Any]], name: str) -> dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "event" and entry.get("name") == name:
            return entry
    raise ValueError(f"Event {name} not found in ABI")


def load_stream_specs(
    chain_id: int = DEFAULT_CHAIN_ID,
    loader: ConfigLoader | None = None,
) -> dict[StreamKind, StreamSpec]:
    """Resolve every configured stream into a StreamSpec."""
    cfg = loader or get_config()
    stream_cfgs = cfg.get_stream_configs(chain_id)

    specs: dict[StreamKind, StreamSpec] = {}
    for kind in StreamKind:
        entry = stream_cfgs.get(kind.value)
        if entry is None:
            raise ValueError(f"No stream config for {kind.value}")
        event_abi = _find_event(cfg.get_abi(entry["abi"]), entry["event"])
        specs[kind] = StreamSpec(
            kind=kind,
            contract_address=entry.get("contract"),
            event_name=entry["event"],
            event_abi=event_abi,
            topic=event_topic(event_abi),
            maker_topic_index=entry.get("maker_topic_index"),
            deploy_block=int(entry.get("deploy_block", 0)),
        )
    return specs
