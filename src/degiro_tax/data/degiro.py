from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

import pandas as pd

from ..config import DEFAULT_FORMAT, DegiroFormat
from ..errors import MalformedRecord
from ..tax.records import Side, Transaction

logger = logging.getLogger(__name__)

# The export's header repeats empty names for the currency columns that follow
# each amount, so columns are addressed by position.
COLUMNS = [
    "date",
    "time",
    "product",
    "isin",
    "reference",
    "venue",
    "quantity",
    "price",
    "price_currency",
    "local_value",
    "local_currency",
    "value",
    "value_currency",
    "exchange_rate",
    "fees",
    "fee_currency",
    "total",
    "total_currency",
    "order_id",
]


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, float) and pd.isna(value)) or str(value).strip() == ""


def parse_amount(value: object, field: str, line: int) -> Decimal:
    """Parse an amount as DEGIRO writes it: `1,234.50`, `1.234,50`, `1234,50` or `-3.2`.

    When both separators appear, the one that comes last is the decimal mark.
    """
    text = str(value).strip().replace(" ", "")
    if "," in text and text.rfind(",") > text.rfind("."):
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", "")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise MalformedRecord(f"invalid {field} {value!r}", line=line) from None
    if not amount.is_finite():
        raise MalformedRecord(f"invalid {field} {value!r}", line=line)
    return amount


def parse_optional_amount(value: object, field: str, line: int) -> Optional[Decimal]:
    if _blank(value):
        return None
    return parse_amount(value, field, line)


def parse_timestamp(day: object, time: object, fmt: DegiroFormat, line: int) -> datetime:
    if _blank(day):
        raise MalformedRecord("missing date", line=line)
    day_s = str(day).strip()
    time_s = "" if _blank(time) else str(time).strip()
    try:
        stamp = datetime.strptime(day_s, fmt.date_format)
        if time_s:
            t = datetime.strptime(time_s, fmt.time_format).time()
            stamp = datetime.combine(stamp.date(), t)
        return stamp
    except ValueError:
        pass
    # other export locales
    try:
        parsed = pd.to_datetime(f"{day_s} {time_s}".strip(), dayfirst=True)
    except (ValueError, TypeError):
        raise MalformedRecord(f"unparseable date/time {day_s!r} {time_s!r}", line=line) from None
    return parsed.to_pydatetime()


def read_degiro_frame(path: Path | str, fmt: DegiroFormat = DEFAULT_FORMAT) -> pd.DataFrame:
    """Load the raw export, one row per line, with positional column names.

    Adds a `line` column with the 1-based data line number (header excluded).
    """
    try:
        df = pd.read_csv(
            path,
            header=None,
            skiprows=1,
            dtype=str,
            keep_default_na=False,
            encoding=fmt.encoding,
        )
    except pd.errors.EmptyDataError:
        # header only: no trades
        logger.info("no transaction rows in %s", path)
        return pd.DataFrame(columns=["line", *COLUMNS])
    if df.shape[1] < len(COLUMNS):
        raise MalformedRecord(f"expected {len(COLUMNS)} columns, found {df.shape[1]}")
    df = df.iloc[:, : len(COLUMNS)]
    df.columns = COLUMNS
    df.insert(0, "line", range(1, len(df) + 1))
    return df


def parse_degiro_row(row: pd.Series, fmt: DegiroFormat = DEFAULT_FORMAT) -> Transaction:
    line = int(row["line"])
    isin = str(row["isin"]).strip()
    if not isin:
        raise MalformedRecord("missing ISIN", line=line)

    quantity = parse_amount(row["quantity"], "quantity", line)
    if quantity == 0:
        raise MalformedRecord("zero quantity", line=line)
    side = Side.BUY if quantity > 0 else Side.SELL

    price = parse_amount(row["price"], "price", line)
    if price < 0:
        raise MalformedRecord(f"negative price {price}", line=line)
    currency = str(row["price_currency"]).strip().upper()
    if not currency:
        raise MalformedRecord("missing price currency", line=line)

    # money leaves the account on a buy and arrives on a sell
    value = parse_optional_amount(row["value"], "value", line)
    if value is not None and value != 0:
        if side is Side.BUY and value > 0:
            raise MalformedRecord(f"buy with positive value {value}", line=line)
        if side is Side.SELL and value < 0:
            raise MalformedRecord(f"sell with negative value {value}", line=line)

    fees = abs(parse_optional_amount(row["fees"], "fees", line) or Decimal(0))
    fee_currency = str(row["fee_currency"]).strip().upper() or currency
    if fees and fee_currency != currency:
        rate = parse_optional_amount(row["exchange_rate"], "exchange rate", line)
        if rate is None or rate <= 0:
            raise MalformedRecord(
                f"fees in {fee_currency} but no exchange rate to {currency}", line=line
            )
        fees = fees * rate

    return Transaction(
        security_id=isin,
        side=side,
        quantity=abs(quantity),
        unit_price=price,
        currency=currency,
        fees=fees,
        timestamp=parse_timestamp(row["date"], row["time"], fmt, line),
        product=str(row["product"]).strip(),
        order_id=str(row["order_id"]).strip(),
    )


def parse_degiro_frame(frame: pd.DataFrame, fmt: DegiroFormat = DEFAULT_FORMAT) -> List[Transaction]:
    """Turn raw export rows into transactions in execution order."""
    rows = frame.iloc[::-1] if fmt.newest_first else frame
    records = []
    for _, row in rows.iterrows():
        try:
            records.append(parse_degiro_row(row, fmt))
        except MalformedRecord as exc:
            if exc.line is None:
                raise MalformedRecord(str(exc), line=int(row["line"])) from exc
            raise
    return records


def exchange_rates_frame(frame: pd.DataFrame, fmt: DegiroFormat = DEFAULT_FORMAT) -> pd.DataFrame:
    """Rates quoted in the export, as `date`/`currency`/`rate` rows."""
    rows = []
    for _, row in frame.iterrows():
        line = int(row["line"])
        rate = parse_optional_amount(row["exchange_rate"], "exchange rate", line)
        currency = str(row["price_currency"]).strip().upper()
        if rate is None or rate <= 0 or not currency:
            continue
        stamp = parse_timestamp(row["date"], row["time"], fmt, line)
        rows.append({"date": stamp, "currency": currency, "rate": rate})
    out = pd.DataFrame(rows, columns=["date", "currency", "rate"])
    return out.sort_values("date", kind="stable").reset_index(drop=True)


def read_degiro_csv(path: Path | str, fmt: DegiroFormat = DEFAULT_FORMAT) -> List[Transaction]:
    frame = read_degiro_frame(path, fmt)
    records = parse_degiro_frame(frame, fmt)
    logger.info("parsed %d transactions from %s", len(records), path)
    return records
