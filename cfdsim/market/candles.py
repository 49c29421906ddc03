"""OHLC candle value type."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class Candle:
    open: float
    high: float
    low: float
    close: float
    timestamp: datetime

    def __post_init__(self) -> None:
        body_low = min(self.open, self.close)
        body_high = max(self.open, self.close)
        if not (self.low <= body_low and body_high <= self.high):
            raise ValueError(
                f"Invalid OHLC ordering: open={self.open} high={self.high} low={self.low} close={self.close}"
            )

    @property
    def is_bullish(self) -> bool:
        return self.close >= self.open

    def to_dict(self) -> Dict[str, Any]:
        """Return a serializable dictionary representation."""
        return {
            "open": float(self.open),
            "high": float(self.high),
            "low": float(self.low),
            "close": float(self.close),
            "bullish": self.is_bullish,
            "timestamp": self.timestamp.isoformat() + "Z",
        }
