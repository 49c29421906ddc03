"""Venue configuration, fixed for the lifetime of a session."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from cfdsim.market.regimes import get_regime


@dataclass(frozen=True)
class VenueConfig:
    starting_price: float = 150.0
    seed_history_length: int = 200
    extreme_move_probability: float = 0.02
    extreme_multiplier_min: float = 3.0
    extreme_multiplier_max: float = 7.0
    initial_regime: str = "neutral"
    random_seed: Optional[int] = None

    initial_balance: float = 10_000.0
    leverage: int = 20
    spread: float = 0.005
    lot_precision: int = 2
    history_limit: Optional[int] = None

    candle_interval_seconds: float = 2.0
    regime_interval_seconds: float = 30.0

    def __post_init__(self) -> None:
        if isinstance(self.leverage, bool) or not isinstance(self.leverage, int) or self.leverage <= 0:
            raise ValueError(f"leverage must be a positive integer, got {self.leverage!r}")
        if not (0.0 <= self.spread < 1.0):
            raise ValueError(f"spread must be in [0, 1), got {self.spread!r}")
        if not math.isfinite(self.starting_price) or self.starting_price <= 0:
            raise ValueError(f"starting_price must be positive, got {self.starting_price!r}")
        if not math.isfinite(self.initial_balance) or self.initial_balance < 0:
            raise ValueError(f"initial_balance must be non-negative, got {self.initial_balance!r}")
        if self.seed_history_length < 1:
            raise ValueError("seed_history_length must be at least 1")
        if not (0.0 <= self.extreme_move_probability <= 1.0):
            raise ValueError("extreme_move_probability must be in [0, 1]")
        if not (1.0 <= self.extreme_multiplier_min <= self.extreme_multiplier_max):
            raise ValueError("extreme multiplier range must satisfy 1 <= min <= max")
        if self.lot_precision < 0:
            raise ValueError("lot_precision must be non-negative")
        if self.history_limit is not None and self.history_limit < 1:
            raise ValueError("history_limit must be positive when set")
        if self.candle_interval_seconds <= 0 or self.regime_interval_seconds <= 0:
            raise ValueError("scheduler intervals must be positive")
        get_regime(self.initial_regime)

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> "VenueConfig":
        """Build from the sectioned YAML layout (`market`, `trading`, `scheduler`)."""
        config = config or {}
        market = config.get("market", {}) or {}
        trading = config.get("trading", {}) or {}
        scheduler = config.get("scheduler", {}) or {}
        defaults = cls.__dataclass_fields__

        def _pick(section: Dict[str, Any], key: str) -> Any:
            value = section.get(key)
            return defaults[key].default if value is None else value

        seed = market.get("random_seed")
        history_limit = trading.get("history_limit")
        return cls(
            starting_price=float(_pick(market, "starting_price")),
            seed_history_length=int(_pick(market, "seed_history_length")),
            extreme_move_probability=float(_pick(market, "extreme_move_probability")),
            extreme_multiplier_min=float(_pick(market, "extreme_multiplier_min")),
            extreme_multiplier_max=float(_pick(market, "extreme_multiplier_max")),
            initial_regime=str(_pick(market, "initial_regime")),
            random_seed=None if seed is None else int(seed),
            initial_balance=float(_pick(trading, "initial_balance")),
            leverage=_pick(trading, "leverage"),
            spread=float(_pick(trading, "spread")),
            lot_precision=int(_pick(trading, "lot_precision")),
            history_limit=None if history_limit is None else int(history_limit),
            candle_interval_seconds=float(_pick(scheduler, "candle_interval_seconds")),
            regime_interval_seconds=float(_pick(scheduler, "regime_interval_seconds")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
