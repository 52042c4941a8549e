from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict

import pandas as pd

from ..errors import MalformedRecord, MissingRate, UnknownCurrency

logger = logging.getLogger(__name__)


def _to_decimal_rate(value: object, row: int) -> Decimal:
    try:
        rate = Decimal(str(value).strip())
    except InvalidOperation:
        raise MalformedRecord(f"invalid exchange rate {value!r}", line=row) from None
    if not rate.is_finite() or rate <= 0:
        raise MalformedRecord(f"exchange rate must be positive, got {value!r}", line=row)
    return rate


class RateTable:
    """Exchange rates against one base currency.

    `frame` has columns `date`, `currency` and `rate`, where `rate` is the
    number of `currency` units one unit of the base currency buys (the way
    DEGIRO quotes it, e.g. USD 1.18 against EUR). Lookups use the most recent
    rate on or before the requested day. With `intraday=True` rates keep their
    time of day and a lookup uses the latest quote at or before the exact
    timestamp, so two trades on one day each get their own rate.
    """

    def __init__(self, frame: pd.DataFrame, base_currency: str = "EUR", intraday: bool = False) -> None:
        missing = [c for c in ("date", "currency", "rate") if c not in frame.columns]
        if missing:
            raise ValueError(f"rate table missing columns {missing}. Got columns: {list(frame.columns)}")

        self.base_currency = base_currency.upper()
        self.intraday = intraday
        df = frame[["date", "currency", "rate"]].copy()
        df["date"] = pd.to_datetime(df["date"])
        if not intraday:
            df["date"] = df["date"].dt.normalize()
        df["currency"] = df["currency"].astype(str).str.strip().str.upper()
        df["rate"] = [_to_decimal_rate(v, i + 1) for i, v in enumerate(df["rate"])]

        self._series: Dict[str, pd.Series] = {}
        for currency, group in df.groupby("currency", sort=True):
            # one rate per key; the last quote wins
            s = group.drop_duplicates("date", keep="last").set_index("date")["rate"].sort_index()
            self._series[str(currency)] = s

    @property
    def currencies(self) -> list[str]:
        return sorted(self._series)

    def rate(self, currency: str, at: date | datetime) -> Decimal:
        currency = currency.upper()
        if currency == self.base_currency:
            return Decimal(1)
        series = self._series.get(currency)
        if series is None:
            raise UnknownCurrency(currency)
        key = pd.Timestamp(at)
        if not self.intraday:
            key = key.normalize()
        pos = series.index.searchsorted(key, side="right") - 1
        if pos < 0:
            raise MissingRate(currency, at)
        return series.iloc[pos]

    def convert(self, amount: Decimal, from_currency: str, to_currency: str, at: date | datetime) -> Decimal:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return amount
        in_base = amount / self.rate(from_currency, at)
        return in_base * self.rate(to_currency, at)

    @classmethod
    def from_csv(cls, path: Path | str, base_currency: str = "EUR") -> "RateTable":
        frame = pd.read_csv(path, dtype=str)
        frame.columns = [c.strip().lower() for c in frame.columns]
        logger.info("loaded %d exchange rates from %s", len(frame), path)
        return cls(frame, base_currency=base_currency)

    @classmethod
    def from_degiro(cls, frame: pd.DataFrame, base_currency: str = "EUR") -> "RateTable":
        """Build the table from the exchange-rate column of a DEGIRO export.

        `frame` is the output of `degiro.exchange_rates_frame`. Each row keeps
        its execution time, since DEGIRO quotes a rate per trade.
        """
        return cls(frame, base_currency=base_currency, intraday=True)
