"""Margin ledger for leveraged CFD positions on a single instrument."""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from cfdsim.core.utils import utc_now
from cfdsim.exchange.errors import InsufficientMargin, InvalidLotSize, PositionNotFound

BUY = "BUY"
SELL = "SELL"
SIDES = (BUY, SELL)


def normalize_side(side: Any) -> str:
    value = str(side or "").strip().upper()
    if value not in SIDES:
        raise ValueError(f"Unsupported side: {side}")
    return value


@dataclass(frozen=True)
class Position:
    """An open trade; owned by the ledger until it is closed."""

    id: int
    side: str  # "BUY" or "SELL"
    lots: float
    open_price: float
    margin: float
    open_time: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "side": self.side,
            "lots": float(self.lots),
            "open_price": float(self.open_price),
            "margin": float(self.margin),
            "open_time": self.open_time.isoformat() + "Z",
        }


@dataclass(frozen=True)
class ClosedTrade:
    """A settled position, kept in most-recent-first history."""

    id: int
    side: str
    lots: float
    open_price: float
    margin: float
    open_time: datetime
    close_price: float
    pnl: float
    close_time: datetime

    @classmethod
    def from_position(cls, position: Position, *, close_price: float, pnl: float, close_time: datetime) -> "ClosedTrade":
        return cls(
            id=position.id,
            side=position.side,
            lots=position.lots,
            open_price=position.open_price,
            margin=position.margin,
            open_time=position.open_time,
            close_price=close_price,
            pnl=pnl,
            close_time=close_time,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "side": self.side,
            "lots": float(self.lots),
            "open_price": float(self.open_price),
            "margin": float(self.margin),
            "open_time": self.open_time.isoformat() + "Z",
            "close_price": float(self.close_price),
            "pnl": float(self.pnl),
            "close_time": self.close_time.isoformat() + "Z",
        }


def unrealized_pnl(position: Position, current_price: float) -> float:
    """Mark-to-market PnL at the raw last price (no spread adjustment).

    Settlement in `CfdLedger.close_position` uses the bid/ask instead, so the
    displayed figure is optimistic by one half-spread on each side.
    """
    price = float(current_price)
    if position.side == BUY:
        return (price - position.open_price) * position.lots
    return (position.open_price - price) * position.lots


@dataclass
class CfdLedger:
    """Account balance, open positions, and closed-trade history.

    The ledger never stores a price: every pricing call receives the current
    price from the caller (the market simulator's latest close).
    """

    balance: float = 10_000.0
    leverage: int = 20
    spread: float = 0.005
    lot_precision: int = 2
    history_limit: Optional[int] = None
    positions: Dict[int, Position] = field(default_factory=dict)
    closed_trades: List[ClosedTrade] = field(default_factory=list)
    _ids: Any = field(default_factory=lambda: itertools.count(1), init=False, repr=False, compare=False)

    # ------------------------------------------------------------------ #
    # Pricing
    # ------------------------------------------------------------------ #
    def buy_price(self, price: float) -> float:
        """Ask: buys open (and sells close) here."""
        return float(price) * (1.0 + self.spread)

    def sell_price(self, price: float) -> float:
        """Bid: sells open (and buys close) here."""
        return float(price) * (1.0 - self.spread)

    def execution_price(self, side: str, price: float) -> float:
        return self.buy_price(price) if normalize_side(side) == BUY else self.sell_price(price)

    def close_execution_price(self, side: str, price: float) -> float:
        return self.sell_price(price) if normalize_side(side) == BUY else self.buy_price(price)

    # ------------------------------------------------------------------ #
    # Derived account metrics
    # ------------------------------------------------------------------ #
    @property
    def used_margin(self) -> float:
        return sum(position.margin for position in self.positions.values())

    @property
    def free_margin(self) -> float:
        return self.balance - self.used_margin

    def total_unrealized_pnl(self, current_price: float) -> float:
        return sum(unrealized_pnl(position, current_price) for position in self.positions.values())

    def equity(self, current_price: float) -> float:
        return self.balance + self.total_unrealized_pnl(current_price)

    def margin_required(self, side: str, lots: float, price: float) -> float:
        return float(lots) * self.execution_price(side, price) / self.leverage

    def max_affordable_lots(self, side: str, price: Optional[float]) -> float:
        """Largest order (truncated to lot precision) the free margin can carry."""
        if price is None or not math.isfinite(float(price)) or float(price) <= 0:
            return 0.0
        execution_price = self.execution_price(side, price)
        if execution_price <= 0:
            return 0.0
        scale = 10 ** self.lot_precision
        lots = math.floor(self.free_margin * self.leverage / execution_price * scale) / scale
        return max(0.0, lots)

    # ------------------------------------------------------------------ #
    # Position lifecycle
    # ------------------------------------------------------------------ #
    def open_position(self, side: str, lots: Any, price: float, *, now: Optional[datetime] = None) -> Position:
        """Open a position at the side's execution price or raise without mutating state."""
        side = normalize_side(side)
        lots_value = self._validate_lots(lots)
        execution_price = self.execution_price(side, price)
        margin = self.margin_required(side, lots_value, price)
        free_margin = self.free_margin
        if margin > free_margin:
            raise InsufficientMargin(
                {
                    "side": side,
                    "lots": lots_value,
                    "price": execution_price,
                    "margin": margin,
                    "free_margin": free_margin,
                }
            )

        position = Position(
            id=next(self._ids),
            side=side,
            lots=lots_value,
            open_price=execution_price,
            margin=margin,
            open_time=now or utc_now(),
        )
        self.positions[position.id] = position
        logging.info(
            "Opened %s #%s %.2f lots @ %.4f (margin %.4f)", side, position.id, lots_value, execution_price, margin
        )
        return position

    def close_position(self, position_id: Any, price: float, *, now: Optional[datetime] = None) -> ClosedTrade:
        """Settle an open position at the opposite side of the spread."""
        position = self.positions.get(self._coerce_id(position_id))
        if position is None:
            raise PositionNotFound({"id": position_id})

        close_price = self.close_execution_price(position.side, price)
        if position.side == BUY:
            pnl = (close_price - position.open_price) * position.lots
        else:
            pnl = (position.open_price - close_price) * position.lots

        trade = ClosedTrade.from_position(position, close_price=close_price, pnl=pnl, close_time=now or utc_now())
        self.balance += pnl
        del self.positions[position.id]
        self.closed_trades.insert(0, trade)
        if self.history_limit is not None and len(self.closed_trades) > self.history_limit:
            del self.closed_trades[self.history_limit:]
        logging.info(
            "Closed %s #%s %.2f lots @ %.4f pnl=%.4f balance=%.4f",
            position.side,
            position.id,
            position.lots,
            close_price,
            pnl,
            self.balance,
        )
        return trade

    def get_open_positions(self) -> List[Position]:
        """Open positions in the order they were opened."""
        return sorted(self.positions.values(), key=lambda position: position.id)

    def get_account_snapshot(self, current_price: float) -> Dict[str, Any]:
        """Return balance, margin usage, PnL and both trade lists as plain dicts."""
        positions = []
        for position in self.get_open_positions():
            row = position.to_dict()
            row["unrealized_pnl"] = unrealized_pnl(position, current_price)
            positions.append(row)
        total_unrealized = self.total_unrealized_pnl(current_price)
        return {
            "balance": self.balance,
            "used_margin": self.used_margin,
            "free_margin": self.free_margin,
            "unrealized_pnl": total_unrealized,
            "equity": self.balance + total_unrealized,
            "leverage": self.leverage,
            "spread": self.spread,
            "buy_price": self.buy_price(current_price),
            "sell_price": self.sell_price(current_price),
            "max_buy_lots": self.max_affordable_lots(BUY, current_price),
            "max_sell_lots": self.max_affordable_lots(SELL, current_price),
            "open_positions": positions,
            "closed_trades": [trade.to_dict() for trade in self.closed_trades],
        }

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _validate_lots(lots: Any) -> float:
        if isinstance(lots, bool):
            raise InvalidLotSize({"lots": lots})
        try:
            value = float(lots)
        except (TypeError, ValueError):
            raise InvalidLotSize({"lots": lots}) from None
        if not math.isfinite(value) or value <= 0:
            raise InvalidLotSize({"lots": lots})
        return value

    @staticmethod
    def _coerce_id(position_id: Any) -> Optional[int]:
        if isinstance(position_id, bool):
            return None
        if isinstance(position_id, int):
            return position_id
        if isinstance(position_id, float):
            return int(position_id) if position_id.is_integer() else None
        try:
            return int(str(position_id).strip())
        except (TypeError, ValueError):
            return None
