"""Column types shared by the lottery models."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class Uint256(TypeDecorator):
    """Unsigned arbitrary-precision integer stored as a decimal string.

    Native value amounts and oracle request ids exceed 64 bits, so they are
    persisted as text and converted back to ``int`` on load.
    """

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value: Optional[int], dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Uint256 columns require int values, got {value!r}")
        if value < 0:
            raise ValueError(f"Uint256 columns cannot store negative values: {value}")
        return str(value)

    def process_result_value(self, value: Optional[str], dialect) -> Optional[int]:
        if value is None:
            return None
        return int(value)
