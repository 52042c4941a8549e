from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from ..errors import CurrencyMismatch
from .matcher import RealizedGain


@dataclass
class YearTotal:
    year: int
    total_gains: Decimal = Decimal(0)
    total_losses: Decimal = Decimal(0)  # magnitude, never negative
    events: int = 0

    @property
    def net_gain(self) -> Decimal:
        return self.total_gains - self.total_losses

    def add(self, gain: Decimal) -> None:
        if gain >= 0:
            self.total_gains += gain
        else:
            self.total_losses -= gain
        self.events += 1


class YearAggregator:
    """Folds realized gain events into per-calendar-year totals.

    Summation only, so the order events arrive in does not matter. Totals of
    independently matched securities can be combined with `merge`.
    """

    def __init__(self) -> None:
        self.table: Dict[int, YearTotal] = {}
        self.currency: Optional[str] = None

    def _check_currency(self, currency: Optional[str]) -> None:
        if currency is None:
            return
        if self.currency is None:
            self.currency = currency
        elif self.currency != currency:
            raise CurrencyMismatch(self.currency, currency)

    def add(self, event: RealizedGain) -> None:
        self._check_currency(event.currency)
        self.table.setdefault(event.year, YearTotal(event.year)).add(event.gain)

    def extend(self, events: Iterable[RealizedGain]) -> "YearAggregator":
        for event in events:
            self.add(event)
        return self

    def merge(self, other: "YearAggregator") -> "YearAggregator":
        self._check_currency(other.currency)
        for year, theirs in other.table.items():
            ours = self.table.setdefault(year, YearTotal(year))
            ours.total_gains += theirs.total_gains
            ours.total_losses += theirs.total_losses
            ours.events += theirs.events
        return self

    def net_gains(self) -> Dict[int, Decimal]:
        return {year: total.net_gain for year, total in sorted(self.table.items())}

    def to_frame(self) -> pd.DataFrame:
        return year_totals_frame(self.table)


def aggregate_by_year(events: Iterable[RealizedGain]) -> YearAggregator:
    return YearAggregator().extend(events)


def year_totals_frame(table: Mapping[int, YearTotal]) -> pd.DataFrame:
    rows = [{
        "year": t.year,
        "total_gains": t.total_gains,
        "total_losses": t.total_losses,
        "net_gain": t.net_gain,
        "events": t.events,
    } for _, t in sorted(table.items())]
    df = pd.DataFrame(rows, columns=["year", "total_gains", "total_losses", "net_gain", "events"])
    return df.set_index("year")
