"""Tests for margin, pricing, and settlement in the CFD ledger."""

from datetime import datetime

import pytest

from cfdsim.exchange.cfd_ledger import BUY, SELL, CfdLedger, unrealized_pnl
from cfdsim.exchange.errors import InsufficientMargin, InvalidLotSize, PositionNotFound

NOW = datetime(2024, 1, 1, 9, 30)


def _ledger(**kwargs):
    params = {"balance": 10_000.0, "leverage": 20, "spread": 0.005}
    params.update(kwargs)
    return CfdLedger(**params)


def test_bid_ask_prices():
    ledger = _ledger()
    assert ledger.buy_price(150.0) == pytest.approx(150.75)
    assert ledger.sell_price(150.0) == pytest.approx(149.25)


def test_open_then_close_buy_scenario():
    ledger = _ledger()
    position = ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    assert position.open_price == pytest.approx(150.75)
    assert position.margin == pytest.approx(7.5375)
    assert ledger.used_margin == pytest.approx(7.5375)
    assert ledger.free_margin == pytest.approx(9992.4625)

    trade = ledger.close_position(position.id, 160.0, now=NOW)
    assert trade.close_price == pytest.approx(159.2)
    assert trade.pnl == pytest.approx(8.45)
    assert ledger.balance == pytest.approx(10008.45)
    assert ledger.positions == {}
    assert ledger.closed_trades == [trade]


def test_sell_settlement_uses_ask():
    ledger = _ledger()
    position = ledger.open_position("sell", 2.0, 150.0, now=NOW)
    assert position.side == SELL
    assert position.open_price == pytest.approx(149.25)
    trade = ledger.close_position(position.id, 140.0, now=NOW)
    assert trade.close_price == pytest.approx(140.7)
    assert trade.pnl == pytest.approx((149.25 - 140.7) * 2.0)
    assert ledger.balance == pytest.approx(10_000.0 + trade.pnl)


def test_round_trip_at_same_price_costs_the_spread():
    ledger = _ledger()
    position = ledger.open_position(BUY, 1.0, 100.0, now=NOW)
    trade = ledger.close_position(position.id, 100.0, now=NOW)
    assert trade.pnl == pytest.approx(99.5 - 100.5)
    assert ledger.balance < 10_000.0


@pytest.mark.parametrize("lots", [0, -1.0, "abc", None, float("nan"), True])
def test_invalid_lot_size_is_rejected_without_state_change(lots):
    ledger = _ledger()
    with pytest.raises(InvalidLotSize):
        ledger.open_position(BUY, lots, 150.0, now=NOW)
    assert ledger.positions == {}
    assert ledger.balance == 10_000.0


def test_insufficient_margin_is_rejected_without_state_change():
    ledger = _ledger(balance=100.0)
    with pytest.raises(InsufficientMargin) as excinfo:
        ledger.open_position(BUY, 100.0, 150.0, now=NOW)
    assert excinfo.value.reason == "insufficient_margin"
    assert excinfo.value.details["margin"] == pytest.approx(100.0 * 150.75 / 20)
    assert ledger.positions == {}
    assert ledger.balance == 100.0
    assert ledger.used_margin == 0


def test_margin_capacity_is_cumulative():
    ledger = _ledger(balance=100.0)
    lots = ledger.max_affordable_lots(BUY, 150.0)
    ledger.open_position(BUY, lots, 150.0, now=NOW)
    with pytest.raises(InsufficientMargin):
        ledger.open_position(BUY, 0.1, 150.0, now=NOW)
    assert len(ledger.positions) == 1


def test_used_margin_grows_by_exactly_the_new_margin():
    ledger = _ledger()
    ledger.open_position(BUY, 1.5, 150.0, now=NOW)
    before = ledger.used_margin
    position = ledger.open_position(SELL, 0.37, 151.3, now=NOW)
    assert ledger.used_margin == before + position.margin


def test_max_affordable_lots_truncates_to_two_decimals():
    ledger = _ledger()
    assert ledger.max_affordable_lots(BUY, 150.0) == 1326.69
    assert ledger.max_affordable_lots(SELL, 150.0) == 1340.03
    assert ledger.max_affordable_lots(BUY, None) == 0.0
    assert ledger.max_affordable_lots(BUY, 0.0) == 0.0


def test_max_affordable_lots_never_negative():
    ledger = _ledger(balance=10.0)
    ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    ledger.balance = 1.0
    assert ledger.free_margin < 0
    assert ledger.max_affordable_lots(BUY, 150.0) == 0.0


def test_close_twice_fails_the_second_time():
    ledger = _ledger()
    position = ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    ledger.close_position(position.id, 151.0, now=NOW)
    balance = ledger.balance
    with pytest.raises(PositionNotFound):
        ledger.close_position(position.id, 151.0, now=NOW)
    assert len(ledger.closed_trades) == 1
    assert ledger.balance == balance


def test_close_unknown_or_malformed_id():
    ledger = _ledger()
    with pytest.raises(PositionNotFound):
        ledger.close_position(999, 150.0)
    with pytest.raises(PositionNotFound):
        ledger.close_position("not-an-id", 150.0)


def test_close_accepts_string_id():
    ledger = _ledger()
    position = ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    trade = ledger.close_position(str(position.id), 150.0, now=NOW)
    assert trade.id == position.id


def test_history_is_most_recent_first_and_ids_unique():
    ledger = _ledger()
    first = ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    second = ledger.open_position(SELL, 1.0, 150.0, now=NOW)
    third = ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    assert len({first.id, second.id, third.id}) == 3
    ledger.close_position(first.id, 150.0, now=NOW)
    ledger.close_position(second.id, 150.0, now=NOW)
    assert [t.id for t in ledger.closed_trades] == [second.id, first.id]
    assert set(ledger.positions).isdisjoint(t.id for t in ledger.closed_trades)


def test_history_limit_drops_oldest():
    ledger = _ledger(history_limit=2)
    for _ in range(3):
        position = ledger.open_position(BUY, 1.0, 150.0, now=NOW)
        ledger.close_position(position.id, 150.0, now=NOW)
    assert [t.id for t in ledger.closed_trades] == [3, 2]


def test_unrealized_pnl_uses_raw_price():
    ledger = _ledger()
    buy = ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    sell = ledger.open_position(SELL, 2.0, 150.0, now=NOW)
    assert unrealized_pnl(buy, 160.0) == pytest.approx(160.0 - 150.75)
    assert unrealized_pnl(sell, 160.0) == pytest.approx((149.25 - 160.0) * 2.0)
    total = ledger.total_unrealized_pnl(160.0)
    assert total == pytest.approx((160.0 - 150.75) + (149.25 - 160.0) * 2.0)
    assert ledger.equity(160.0) == pytest.approx(ledger.balance + total)
    # Display P/L ignores the exit spread; settlement does not.
    trade = ledger.close_position(buy.id, 160.0, now=NOW)
    assert trade.pnl < unrealized_pnl(buy, 160.0)


def test_equity_equals_balance_with_flat_book():
    ledger = _ledger()
    assert ledger.equity(173.2) == ledger.balance
    position = ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    ledger.close_position(position.id, 155.0, now=NOW)
    assert ledger.equity(90.0) == ledger.balance


def test_unknown_side_raises_value_error():
    ledger = _ledger()
    with pytest.raises(ValueError):
        ledger.open_position("HOLD", 1.0, 150.0)


def test_account_snapshot_shape():
    ledger = _ledger()
    ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    snapshot = ledger.get_account_snapshot(160.0)
    assert snapshot["balance"] == 10_000.0
    assert snapshot["used_margin"] == pytest.approx(7.5375)
    assert snapshot["open_positions"][0]["unrealized_pnl"] == pytest.approx(9.25)
    assert snapshot["open_positions"][0]["open_time"] == "2024-01-01T09:30:00Z"
    assert snapshot["equity"] == pytest.approx(10_009.25)
    assert snapshot["closed_trades"] == []


def test_open_position_margin_matches_margin_required():
    ledger = _ledger()
    position = ledger.open_position(SELL, 0.75, 142.5, now=NOW)
    assert position.margin == ledger.margin_required(SELL, 0.75, 142.5)


def test_close_accepts_integral_float_id():
    ledger = _ledger()
    position = ledger.open_position(BUY, 1.0, 150.0, now=NOW)
    with pytest.raises(PositionNotFound):
        ledger.close_position(position.id + 0.5, 150.0, now=NOW)
    trade = ledger.close_position(float(position.id), 150.0, now=NOW)
    assert trade.id == position.id
