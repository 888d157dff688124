"""
Data models for the Tradier stream client.
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple


class StreamState(Enum):
    UNCONNECTED = "UNCONNECTED"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class SubscriptionRequest:
    """
    Payload sent once, right after the stream connects.
    Field names on the wire are fixed by Tradier: note the lowercase
    `sessionid` next to camelCase `validOnly` / `advancedDetails`.
    """
    symbols: Tuple[str, ...]
    session_id: str
    filters: Tuple[str, ...] = field(default_factory=lambda: ("All",))
    linebreak: bool = False
    valid_only: bool = False
    advanced_details: bool = False

    def __post_init__(self):
        # Accept lists from callers but keep the value hashable and immutable
        object.__setattr__(self, "symbols", tuple(self.symbols))
        object.__setattr__(self, "filters", tuple(self.filters))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbols": list(self.symbols),
            "sessionid": self.session_id,
            "filter": list(self.filters),
            "linebreak": self.linebreak,
            "validOnly": self.valid_only,
            "advancedDetails": self.advanced_details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> "SubscriptionRequest":
        data = json.loads(raw)
        return cls(
            symbols=tuple(data["symbols"]),
            session_id=data["sessionid"],
            filters=tuple(data["filter"]),
            linebreak=bool(data["linebreak"]),
            valid_only=bool(data["validOnly"]),
            advanced_details=bool(data["advancedDetails"]),
        )
