"""Synthetic price generation (sentiment regimes, candles, simulator)."""

from cfdsim.market.candles import Candle
from cfdsim.market.regimes import REGIMES, SentimentRegime, get_regime
from cfdsim.market.simulator import MarketSimulator

__all__ = [
    "Candle",
    "MarketSimulator",
    "REGIMES",
    "SentimentRegime",
    "get_regime",
]
