"""Ledger rejection types.

Every rejection leaves the ledger untouched; callers may retry with new input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class OrderRejected(Exception):
    """Raised when a ledger operation fails a deterministic validation.

    Attributes
    ----------
    reason:
        Short machine-friendly reason (e.g. "invalid_lot_size", "insufficient_margin").
    details:
        Optional structured context for logs/UI.
    """

    reason: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        base = str(self.reason or "rejected")
        if self.details:
            return f"{base}: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "reason": self.reason, "details": self.details or {}}


class InvalidLotSize(OrderRejected):
    def __init__(self, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("invalid_lot_size", details)


class InsufficientMargin(OrderRejected):
    def __init__(self, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("insufficient_margin", details)


class PositionNotFound(OrderRejected):
    def __init__(self, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("position_not_found", details)
