from decimal import Decimal

import pytest

from degiro_tax.tax.carryforward import resolve_carryforward

TABLE = {2019: Decimal("-100"), 2020: Decimal("50"), 2021: Decimal("200")}


def test_only_prior_losses_carry():
    r = resolve_carryforward(TABLE, 2021, 5)
    assert r.unadjusted == Decimal("200")
    assert r.adjusted == Decimal("100")
    assert r.carried_loss == Decimal("-100")


def test_zero_lookback_is_identity():
    for year in (2018, 2019, 2020, 2021, 2022):
        r = resolve_carryforward(TABLE, year, 0)
        assert r.adjusted == r.unadjusted


def test_window_bounds_are_inclusive():
    table = {2017: Decimal("-40"), 2018: Decimal("-10"), 2020: Decimal("30")}
    assert resolve_carryforward(table, 2020, 2).adjusted == Decimal("20")  # 2018, 2019
    assert resolve_carryforward(table, 2020, 3).adjusted == Decimal("-20")  # 2017..2019


def test_missing_target_year_is_zero():
    r = resolve_carryforward(TABLE, 2022, 3)
    assert r.unadjusted == 0
    assert r.adjusted == Decimal("-100")


def test_losing_target_year_still_adds_carried_losses():
    r = resolve_carryforward({2020: Decimal("-10"), 2021: Decimal("-5")}, 2021, 1)
    assert r.adjusted == Decimal("-15")


def test_negative_lookback_rejected():
    with pytest.raises(ValueError):
        resolve_carryforward(TABLE, 2021, -1)
