"""Regime-switching random walk that produces the venue's candle stream.

The simulator is not thread-safe on its own; `TradingSession` serializes access.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from cfdsim.core.utils import utc_now
from cfdsim.market.candles import Candle
from cfdsim.market.regimes import NEUTRAL, SentimentRegime, choose_regime


class MarketSimulator:
    """Owns the active sentiment regime and the append-only candle sequence."""

    def __init__(
        self,
        *,
        starting_price: float = 150.0,
        regime: SentimentRegime = NEUTRAL,
        extreme_move_probability: float = 0.02,
        extreme_multiplier_min: float = 3.0,
        extreme_multiplier_max: float = 7.0,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.starting_price = float(starting_price)
        self.regime = regime
        self.extreme_move_probability = float(extreme_move_probability)
        self.extreme_multiplier_min = float(extreme_multiplier_min)
        self.extreme_multiplier_max = float(extreme_multiplier_max)
        self.rng = rng or random.Random()
        self.clock = clock or utc_now
        self._candles: List[Candle] = []
        self.last_close: float = self.starting_price

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    @property
    def candles(self) -> List[Candle]:
        """Return a copy of the candle sequence, oldest first."""
        return list(self._candles)

    @property
    def current_price(self) -> float:
        """Latest close; the starting price until the first candle exists."""
        if not self._candles:
            return self.starting_price
        return self._candles[-1].close

    def __len__(self) -> int:
        return len(self._candles)

    def recent_candles(self, limit: Optional[int] = None) -> List[Candle]:
        if limit is None:
            return list(self._candles)
        limit = max(int(limit), 0)
        return self._candles[-limit:] if limit else []

    def seed_history(self, count: int, *, interval: timedelta = timedelta(seconds=2)) -> List[Candle]:
        """Generate `count` back-to-back candles so consumers start with a chart.

        Timestamps are back-dated one `interval` apart and end at the current clock.
        """
        count = int(count)
        if count <= 0:
            return []
        now = self.clock()
        seeded: List[Candle] = []
        for i in range(count):
            stamp = now - interval * (count - 1 - i)
            seeded.append(self._append(self._generate(self.last_close, stamp)))
        logging.info(
            "Seeded %d candles under %s regime; last close %.4f", count, self.regime.name, self.last_close
        )
        return seeded

    def advance_tick(self) -> Candle:
        """Produce and append exactly one candle from the last close."""
        candle = self._append(self._generate(self.last_close, self.clock()))
        logging.debug("Tick %s close=%.4f regime=%s", candle.timestamp.isoformat(), candle.close, self.regime.name)
        return candle

    def switch_regime(self) -> SentimentRegime:
        """Replace the active regime with a uniformly random one (may repeat)."""
        previous = self.regime
        self.regime = choose_regime(self.rng)
        logging.info("Sentiment regime switched %s -> %s", previous.name, self.regime.name)
        return self.regime

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _append(self, candle: Candle) -> Candle:
        self._candles.append(candle)
        self.last_close = candle.close
        return candle

    def _next_timestamp(self, stamp: datetime) -> datetime:
        if self._candles and stamp <= self._candles[-1].timestamp:
            return self._candles[-1].timestamp + timedelta(microseconds=1)
        return stamp

    def _generate(self, open_price: float, stamp: datetime) -> Candle:
        regime = self.regime
        rng = self.rng
        vol = regime.volatility

        goes_up = rng.random() < regime.up_probability
        strength = rng.uniform(0.3, 1.0)
        multiplier = 1.0
        if rng.random() < self.extreme_move_probability:
            multiplier = rng.uniform(self.extreme_multiplier_min, self.extreme_multiplier_max)

        magnitude = (abs(regime.bias) * strength + rng.uniform(0.0, vol)) * multiplier
        change = magnitude if goes_up else -magnitude
        change += rng.uniform(-0.25 * vol, 0.25 * vol)

        close = open_price * (1.0 + change)
        wick = abs(close - open_price) * rng.uniform(0.5, 2.0)
        body_high = max(open_price, close)
        body_low = min(open_price, close)
        high = max(body_high + wick * rng.random(), body_high)
        low = min(body_low - wick * rng.random(), body_low)

        return Candle(
            open=open_price,
            high=high,
            low=low,
            close=close,
            timestamp=self._next_timestamp(stamp),
        )
