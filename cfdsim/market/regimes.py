"""Market sentiment regimes driving the synthetic random walk."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class SentimentRegime:
    """Parameter set for one sentiment state.

    `bias` is the per-candle directional drift, `volatility` the width of the
    uniform move draw, and `up_probability` the chance a candle closes higher.
    """

    name: str
    bias: float
    volatility: float
    up_probability: float

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "bias": float(self.bias),
            "volatility": float(self.volatility),
            "up_probability": float(self.up_probability),
        }


# Ordered most bearish -> most bullish.
REGIMES: Tuple[SentimentRegime, ...] = (
    SentimentRegime("very_bearish", bias=-0.0008, volatility=0.0003, up_probability=0.25),
    SentimentRegime("bearish", bias=-0.0004, volatility=0.0002, up_probability=0.35),
    SentimentRegime("neutral", bias=0.0, volatility=0.0004, up_probability=0.5),
    SentimentRegime("bullish", bias=0.0004, volatility=0.0002, up_probability=0.65),
    SentimentRegime("very_bullish", bias=0.0008, volatility=0.0003, up_probability=0.75),
)

NEUTRAL = REGIMES[2]

_BY_NAME: Dict[str, SentimentRegime] = {regime.name: regime for regime in REGIMES}


def get_regime(name: str) -> SentimentRegime:
    """Return the canonical regime called `name` (case-insensitive)."""
    key = str(name or "").strip().lower()
    try:
        return _BY_NAME[key]
    except KeyError:
        raise ValueError(f"Unknown sentiment regime: {name!r}") from None


def choose_regime(rng: Optional[random.Random] = None) -> SentimentRegime:
    """Pick a regime uniformly at random; the previous one may repeat."""
    return (rng or random).choice(REGIMES)
