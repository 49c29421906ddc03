"""Account ledger for leveraged CFD positions."""

from cfdsim.exchange.cfd_ledger import BUY, SELL, CfdLedger, ClosedTrade, Position
from cfdsim.exchange.errors import InsufficientMargin, InvalidLotSize, OrderRejected, PositionNotFound

__all__ = [
    "BUY",
    "SELL",
    "CfdLedger",
    "ClosedTrade",
    "InsufficientMargin",
    "InvalidLotSize",
    "OrderRejected",
    "Position",
    "PositionNotFound",
]
