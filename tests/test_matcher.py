from datetime import datetime
from decimal import Decimal

import pandas as pd
import pytest

from degiro_tax.data.rates import RateTable
from degiro_tax.errors import CurrencyMismatch, InsufficientLots, MalformedRecord, UnknownCurrency
from degiro_tax.tax.matcher import FifoMatcher, allocate_fee, match_transactions
from degiro_tax.tax.records import Side, Transaction


def _tx(side, qty, price, when, fees="0", security="A", currency="EUR"):
    return Transaction(
        security_id=security,
        side=side,
        quantity=Decimal(qty),
        unit_price=Decimal(price),
        currency=currency,
        fees=Decimal(fees),
        timestamp=when,
    )


def test_single_round_trip():
    events = match_transactions([
        _tx(Side.BUY, "10", "100", datetime(2021, 2, 1), fees="10"),
        _tx(Side.SELL, "10", "150", datetime(2021, 9, 1), fees="5"),
    ])
    assert len(events) == 1
    e = events[0]
    assert e.cost_basis == Decimal("1010")
    assert e.proceeds == Decimal("1495")
    assert e.gain == Decimal("485")
    assert e.year == 2021


def test_fifo_uses_oldest_lot_cost():
    events = match_transactions([
        _tx(Side.BUY, "10", "100", datetime(2020, 1, 1)),
        _tx(Side.BUY, "10", "50", datetime(2020, 6, 1)),
        _tx(Side.SELL, "10", "120", datetime(2021, 1, 1)),
    ])
    assert len(events) == 1
    assert events[0].cost_basis == Decimal("1000")
    assert events[0].opened_at == datetime(2020, 1, 1)


def test_quantity_and_fee_conserved_across_slices():
    records = [
        _tx(Side.BUY, "1", "10", datetime(2021, 1, 1)),
        _tx(Side.BUY, "1", "11", datetime(2021, 1, 2)),
        _tx(Side.BUY, "1", "12", datetime(2021, 1, 3)),
        _tx(Side.SELL, "3", "20", datetime(2021, 2, 1), fees="1"),
    ]
    events = match_transactions(records)

    assert len(events) == 3
    assert sum(e.quantity_closed for e in events) == Decimal("3")
    assert sum(e.fee for e in events) == Decimal("1")
    assert [e.cost_basis for e in events] == [Decimal("10"), Decimal("11"), Decimal("12")]


def test_allocate_fee_is_exact():
    parts = allocate_fee(Decimal("10"), [Decimal("1"), Decimal("1"), Decimal("1")])
    assert sum(parts) == Decimal("10")
    assert parts[0] == parts[1]


def test_buy_fee_is_part_of_unit_cost():
    matcher = FifoMatcher()
    lot = matcher.buy(_tx(Side.BUY, "4", "25", datetime(2021, 1, 1), fees="2"))
    assert lot.unit_cost == Decimal("25.5")


def test_sell_beyond_holdings_raises():
    with pytest.raises(InsufficientLots) as err:
        match_transactions([
            _tx(Side.BUY, "5", "10", datetime(2021, 1, 1)),
            _tx(Side.SELL, "6", "10", datetime(2021, 2, 1)),
        ])
    assert err.value.requested == Decimal("6")
    assert err.value.available == Decimal("5")


def test_sell_without_any_buy_raises():
    with pytest.raises(InsufficientLots):
        match_transactions([_tx(Side.SELL, "1", "10", datetime(2021, 2, 1))])


def test_records_are_sorted_by_timestamp():
    events = match_transactions([
        _tx(Side.SELL, "1", "30", datetime(2021, 3, 1)),
        _tx(Side.BUY, "1", "10", datetime(2021, 1, 1)),
    ])
    assert events[0].gain == Decimal("20")


def test_equal_timestamps_keep_input_order():
    same = datetime(2021, 5, 5, 10, 0)
    ok = match_transactions([_tx(Side.BUY, "1", "10", same), _tx(Side.SELL, "1", "12", same)])
    assert ok[0].gain == Decimal("2")

    with pytest.raises(InsufficientLots):
        match_transactions([_tx(Side.SELL, "1", "12", same), _tx(Side.BUY, "1", "10", same)])


def test_partial_lot_carries_into_later_sells():
    events = match_transactions([
        _tx(Side.BUY, "10", "10", datetime(2020, 1, 1)),
        _tx(Side.SELL, "4", "15", datetime(2020, 6, 1)),
        _tx(Side.BUY, "10", "20", datetime(2020, 7, 1)),
        _tx(Side.SELL, "8", "25", datetime(2021, 1, 1)),
    ])
    assert [e.quantity_closed for e in events] == [Decimal("4"), Decimal("6"), Decimal("2")]
    assert [e.gain for e in events] == [Decimal("20"), Decimal("90"), Decimal("10")]


def test_mixed_currency_without_converter_is_rejected():
    with pytest.raises(CurrencyMismatch):
        match_transactions([
            _tx(Side.BUY, "1", "10", datetime(2021, 1, 1), currency="EUR"),
            _tx(Side.SELL, "1", "12", datetime(2021, 2, 1), currency="USD"),
        ])


def _rates():
    frame = pd.DataFrame({
        "date": ["2021-01-01", "2021-06-01"],
        "currency": ["USD", "USD"],
        "rate": ["2", "4"],
    })
    return RateTable(frame, base_currency="EUR")


def test_conversion_happens_at_each_record_timestamp():
    events = match_transactions(
        [
            _tx(Side.BUY, "1", "100", datetime(2021, 1, 10), currency="USD", fees="2"),
            _tx(Side.SELL, "1", "400", datetime(2021, 7, 1), currency="USD", fees="4"),
        ],
        converter=_rates(),
        base_currency="EUR",
    )
    e = events[0]
    assert e.currency == "EUR"
    assert e.cost_basis == Decimal("51")  # (100 + 2) / 2
    assert e.proceeds == Decimal("99")  # (400 - 4) / 4
    assert e.gain == Decimal("48")


def test_native_currency_follows_first_buy_without_base():
    matcher = FifoMatcher(converter=_rates())
    matcher.buy(_tx(Side.BUY, "1", "100", datetime(2021, 1, 10), currency="USD"))
    events = matcher.sell(_tx(Side.SELL, "1", "60", datetime(2021, 7, 1), currency="EUR"))
    assert events[0].currency == "USD"
    assert events[0].proceeds == Decimal("240")
    assert events[0].gain == Decimal("140")


def test_unknown_currency_propagates():
    with pytest.raises(UnknownCurrency):
        match_transactions(
            [_tx(Side.BUY, "1", "100", datetime(2021, 1, 10), currency="CHF")],
            converter=_rates(),
            base_currency="EUR",
        )


def test_transaction_validates_quantity_and_fees():
    with pytest.raises(MalformedRecord):
        _tx(Side.BUY, "0", "10", datetime(2021, 1, 1))
    with pytest.raises(MalformedRecord):
        _tx(Side.BUY, "1", "10", datetime(2021, 1, 1), fees="-1")


def test_transaction_normalises_currency():
    assert _tx(Side.BUY, "1", "10", datetime(2021, 1, 1), currency=" usd ").currency == "USD"


def test_transaction_rejects_unknown_side():
    with pytest.raises(MalformedRecord, match="unknown side"):
        _tx("HOLD", "1", "10", datetime(2021, 1, 1))
