"""
Deduplication of fetched event records against already-known identifiers.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence

from shared.types import EventRecord


def dedup(candidates: Sequence[EventRecord], known: Collection[str]) -> list[EventRecord]:
    """
    Return the candidates whose transaction hash is not in `known`.

    Input order is preserved. Repeated hashes within `candidates` are all
    kept; only the known set is used for suppression.
    """
    return [record for record in candidates if record.transaction_hash not in known]
