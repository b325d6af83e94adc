"""
Serialization utilities for Swap Event Sync.

Provides JSON encoding for Decimal, HexBytes, large integers, enums,
dataclasses and web3 types.

Usage:
    from shared.serialization_utils import DecimalEncoder
    json.dumps(data, cls=DecimalEncoder)
"""

import dataclasses
import json
from decimal import Decimal
from enum import Enum
from json import JSONEncoder
from typing import Any

from hexbytes import HexBytes


class DecimalEncoder(JSONEncoder):
    """
    Custom JSON encoder handling Decimal, HexBytes, large integers, and web3.py types.

    Sources:
    - RFC 7159 section 6 (JSON number limits)
    - IEEE 754-2008 (double precision safe integer limit: 2^53 - 1)
    """

    # IEEE 754 double precision safe integer limit
    _MAX_SAFE_INTEGER = 2**53 - 1

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        # Handle HexBytes from web3.py (addresses, tx hashes, raw bytes)
        if isinstance(obj, (HexBytes, bytes)):
            return "0x" + bytes(obj).hex()
        # Handle web3.py AttributeDict (common in transaction/block responses)
        if hasattr(obj, "__iter__") and hasattr(obj, "keys"):
            return dict(obj)
        return super().default(obj)

    def encode(self, obj: Any) -> str:
        """Override encode to convert large integers to strings before JSON serialization."""
        return super().encode(self._convert_large_ints(obj))

    def _convert_large_ints(self, obj: Any) -> Any:
        """
        Recursively convert integers exceeding IEEE 754 safe limits to strings.

        Token amounts are uint256 and routinely exceed Number.MAX_SAFE_INTEGER.
        Dataclasses are flattened first so their fields get the same treatment.
        """
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            obj = dataclasses.asdict(obj)
        if isinstance(obj, dict):
            return {k: self._convert_large_ints(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [self._convert_large_ints(item) for item in obj]
        elif isinstance(obj, bool):
            return obj
        elif isinstance(obj, int) and (obj > self._MAX_SAFE_INTEGER or obj < -self._MAX_SAFE_INTEGER):
            return str(obj)
        return obj


def to_json(obj: Any) -> str:
    """Serialize with DecimalEncoder."""
    return json.dumps(obj, cls=DecimalEncoder)
