"""Trading session coordinating the candle ticker, regime switcher, and ledger."""

from __future__ import annotations

import logging
import math
import random
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from cfdsim.core.config import VenueConfig
from cfdsim.core.utils import utc_now
from cfdsim.exchange.cfd_ledger import BUY, SELL, CfdLedger, ClosedTrade, Position
from cfdsim.exchange.errors import OrderRejected
from cfdsim.market.regimes import get_regime
from cfdsim.market.simulator import MarketSimulator

T = TypeVar("T")


@dataclass(frozen=True)
class ExecutionResult(Generic[T]):
    """Outcome of a user intent: either `value` or a ledger rejection."""

    ok: bool
    value: Optional[T] = None
    error: Optional[OrderRejected] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"ok": self.ok}
        if self.value is not None:
            payload["value"] = self.value.to_dict()  # type: ignore[attr-defined]
        if self.error is not None:
            payload.update(self.error.to_dict())
        return payload


class TradingSession:
    """Single owner of simulator + ledger state behind one lock.

    Candle ticks, regime switches, and user operations are serialized on
    `_lock`, so a margin check always sees the same price it settles against.
    """

    def __init__(
        self,
        config: Optional[VenueConfig] = None,
        *,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or VenueConfig()
        self.clock = clock or utc_now
        self.rng = rng or random.Random(self.config.random_seed)
        self.simulator = MarketSimulator(
            starting_price=self.config.starting_price,
            regime=get_regime(self.config.initial_regime),
            extreme_move_probability=self.config.extreme_move_probability,
            extreme_multiplier_min=self.config.extreme_multiplier_min,
            extreme_multiplier_max=self.config.extreme_multiplier_max,
            rng=self.rng,
            clock=self.clock,
        )
        self.ledger = CfdLedger(
            balance=self.config.initial_balance,
            leverage=self.config.leverage,
            spread=self.config.spread,
            lot_precision=self.config.lot_precision,
            history_limit=self.config.history_limit,
        )
        self.requested_lots: Optional[float] = None
        self.stop_event = threading.Event()
        self._lock = threading.RLock()
        self._threads: List[threading.Thread] = []

        self.simulator.seed_history(
            self.config.seed_history_length,
            interval=timedelta(seconds=self.config.candle_interval_seconds),
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    @property
    def is_running(self) -> bool:
        if self.stop_event.is_set():
            return False
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        """Launch the candle and regime loops in background threads."""
        with self._lock:
            if self.is_running:
                return
            # Loops from a previous run may still be draining; they keep the old, set event.
            self.stop_event = threading.Event()
            self._threads = [
                threading.Thread(
                    target=self._run_periodic,
                    args=(self.stop_event, self.config.candle_interval_seconds, self.tick, "candle tick"),
                    name="candle-ticker",
                    daemon=True,
                ),
                threading.Thread(
                    target=self._run_periodic,
                    args=(self.stop_event, self.config.regime_interval_seconds, self.switch_regime, "regime switch"),
                    name="regime-switcher",
                    daemon=True,
                ),
            ]
            for thread in self._threads:
                thread.start()
        logging.info(
            "Session started: candle every %ss, regime switch every %ss",
            self.config.candle_interval_seconds,
            self.config.regime_interval_seconds,
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop both loops; an iteration already in progress is allowed to finish."""
        logging.info("Stop signal received; shutting down session.")
        self.stop_event.set()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join(timeout)
        self._threads = [thread for thread in self._threads if thread.is_alive()]

    def _run_periodic(
        self, stop_event: threading.Event, interval: float, action: Callable[[], Any], label: str
    ) -> None:
        while not stop_event.wait(interval):
            try:
                action()
            except Exception:
                logging.exception("%s failed; continuing.", label.capitalize())

    # ------------------------------------------------------------------ #
    # Market events
    # ------------------------------------------------------------------ #
    def tick(self) -> Dict[str, Any]:
        with self._lock:
            return self.simulator.advance_tick().to_dict()

    def switch_regime(self) -> Dict[str, Any]:
        with self._lock:
            return self.simulator.switch_regime().to_dict()

    # ------------------------------------------------------------------ #
    # User intents
    # ------------------------------------------------------------------ #
    def request_open(self, side: str, lots: Any = None) -> ExecutionResult[Position]:
        """Open a position at the current price; `lots=None` uses the requested lots."""
        with self._lock:
            volume = self.requested_lots if lots is None else lots
            try:
                position = self.ledger.open_position(
                    side, volume, self.simulator.current_price, now=self.clock()
                )
            except OrderRejected as exc:
                logging.warning("Open %s rejected: %s", side, exc)
                return ExecutionResult(ok=False, error=exc)
            self.requested_lots = None
            return ExecutionResult(ok=True, value=position)

    def request_close(self, position_id: Any) -> ExecutionResult[ClosedTrade]:
        with self._lock:
            try:
                trade = self.ledger.close_position(position_id, self.simulator.current_price, now=self.clock())
            except OrderRejected as exc:
                logging.warning("Close #%s rejected: %s", position_id, exc)
                return ExecutionResult(ok=False, error=exc)
            return ExecutionResult(ok=True, value=trade)

    def set_requested_lots(self, lots: Any) -> Optional[float]:
        """Record the lot-size selector value, clamped to what the account can margin.

        Non-positive or non-numeric input clears the selection.
        """
        with self._lock:
            try:
                value = float(lots)
            except (TypeError, ValueError):
                value = 0.0
            if not math.isfinite(value) or value <= 0:
                self.requested_lots = None
                return None
            value = min(round(value, self.config.lot_precision), self.max_lots())
            self.requested_lots = value if value > 0 else None
            return self.requested_lots

    def max_lots(self) -> float:
        with self._lock:
            price = self.simulator.current_price
            return max(
                0.0,
                self.ledger.max_affordable_lots(BUY, price),
                self.ledger.max_affordable_lots(SELL, price),
            )

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #
    def get_candles(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [candle.to_dict() for candle in self.simulator.recent_candles(limit)]

    def get_snapshot(self, *, candle_limit: Optional[int] = None) -> Dict[str, Any]:
        """Return a consistent, read-only view of market and account state."""
        with self._lock:
            price = self.simulator.current_price
            starting = self.simulator.starting_price
            account = self.ledger.get_account_snapshot(price)
            return {
                "candles": [candle.to_dict() for candle in self.simulator.recent_candles(candle_limit)],
                "current_price": price,
                "starting_price": starting,
                "price_change_pct": (price - starting) / starting * 100.0,
                "regime": self.simulator.regime.to_dict(),
                "requested_lots": self.requested_lots,
                "max_lots": max(0.0, account["max_buy_lots"], account["max_sell_lots"]),
                "running": self.is_running,
                **account,
            }
