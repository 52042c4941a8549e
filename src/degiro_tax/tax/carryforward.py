from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping


@dataclass(frozen=True)
class CarryforwardResult:
    year: int
    lookback_years: int
    unadjusted: Decimal
    adjusted: Decimal
    carried_loss: Decimal  # sum of the prior-year net losses applied, <= 0


def resolve_carryforward(
    net_gains: Mapping[int, Decimal],
    target_year: int,
    lookback_years: int,
) -> CarryforwardResult:
    """Combine the target year's net gain with losses from earlier years.

    Only prior years whose net result was a loss count; a profitable prior year
    neither adds to nor eats into the carried losses. Years missing from
    `net_gains` contribute nothing.

    >>> table = {2019: Decimal(-100), 2020: Decimal(50), 2021: Decimal(200)}
    >>> resolve_carryforward(table, 2021, 5).adjusted
    Decimal('100')
    """
    if lookback_years < 0:
        raise ValueError(f"lookback_years must be >= 0, got {lookback_years}")

    unadjusted = Decimal(net_gains.get(target_year, 0))
    carried = Decimal(0)
    for year in range(target_year - lookback_years, target_year):
        net = net_gains.get(year, 0)
        if net < 0:
            carried += net

    return CarryforwardResult(
        year=target_year,
        lookback_years=lookback_years,
        unadjusted=unadjusted,
        adjusted=unadjusted + carried,
        carried_loss=carried,
    )
