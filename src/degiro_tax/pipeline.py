from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .config import ARTIFACTS_DIR, DEFAULT_FORMAT, DEFAULT_REPORT, DegiroFormat, ReportConfig
from .data.degiro import exchange_rates_frame, parse_degiro_frame, read_degiro_frame
from .data.rates import RateTable
from .tax.aggregate import YearTotal, aggregate_by_year, year_totals_frame
from .tax.carryforward import resolve_carryforward
from .tax.lots import Lot
from .tax.matcher import CurrencyConverter, FifoMatcher, RealizedGain
from .tax.records import Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaxReport:
    year: int
    lookback_years: int
    currency: Optional[str]
    unadjusted: Decimal
    adjusted: Decimal
    events: List[RealizedGain] = field(default_factory=list)
    year_totals: Dict[int, YearTotal] = field(default_factory=dict)
    open_lots: List[Lot] = field(default_factory=list)

    @property
    def figures(self) -> Tuple[Decimal, Decimal]:
        return self.unadjusted, self.adjusted

    @property
    def carried_loss(self) -> Decimal:
        return self.adjusted - self.unadjusted


def build_report(
    records: Iterable[Transaction],
    year: int,
    lookback_years: int = 0,
    converter: CurrencyConverter | None = None,
    base_currency: str | None = None,
) -> TaxReport:
    """Match, aggregate and resolve carried losses for `year`.

    Records dated after `year` are dropped first: they cannot change the
    figures for `year`, and gaps in later history must not fail the report.
    """
    if lookback_years < 0:
        raise ValueError(f"lookback_years must be >= 0, got {lookback_years}")

    records = list(records)
    kept = [r for r in records if r.timestamp.year <= year]
    if len(kept) < len(records):
        logger.warning("ignoring %d transactions dated after %d", len(records) - len(kept), year)

    matcher = FifoMatcher(converter=converter, base_currency=base_currency)
    events = matcher.run(kept)
    totals = aggregate_by_year(events)
    result = resolve_carryforward(totals.net_gains(), year, lookback_years)

    logger.info(
        "%d: unadjusted %s, adjusted %s (look-back %d years)",
        year,
        result.unadjusted,
        result.adjusted,
        lookback_years,
    )
    return TaxReport(
        year=year,
        lookback_years=lookback_years,
        currency=totals.currency or base_currency,
        unadjusted=result.unadjusted,
        adjusted=result.adjusted,
        events=events,
        year_totals=dict(sorted(totals.table.items())),
        open_lots=matcher.ledger.open_lots(),
    )


def compute_figures(
    records: Iterable[Transaction],
    year: int,
    lookback_years: int = 0,
    converter: CurrencyConverter | None = None,
    base_currency: str | None = None,
) -> Tuple[Decimal, Decimal]:
    """Return the `(unadjusted, adjusted)` gain for `year`."""
    return build_report(records, year, lookback_years, converter, base_currency).figures


def run_report(
    csv_path: Path | str,
    config: ReportConfig = DEFAULT_REPORT,
    rates_path: Path | str | None = None,
    fmt: DegiroFormat = DEFAULT_FORMAT,
) -> TaxReport:
    """Parse a DEGIRO export and build the report it implies.

    Exchange rates come from `rates_path` when given, otherwise from the
    rates quoted inside the export itself.
    """
    frame = read_degiro_frame(csv_path, fmt)
    records = parse_degiro_frame(frame, fmt)
    logger.info("parsed %d transactions from %s", len(records), csv_path)

    if rates_path is not None:
        rates = RateTable.from_csv(rates_path, base_currency=config.base_currency)
    else:
        rates = RateTable.from_degiro(exchange_rates_frame(frame, fmt), base_currency=config.base_currency)

    return build_report(
        records,
        year=config.target_year(),
        lookback_years=config.lookback_years,
        converter=rates,
        base_currency=config.base_currency,
    )


def events_frame(events: Iterable[RealizedGain]) -> pd.DataFrame:
    rows = [{
        "security_id": e.security_id,
        "opened_at": e.opened_at,
        "closed_at": e.closed_at,
        "quantity": e.quantity_closed,
        "cost_basis": e.cost_basis,
        "proceeds": e.proceeds,
        "fee": e.fee,
        "gain": e.gain,
        "currency": e.currency,
    } for e in events]
    columns = ["security_id", "opened_at", "closed_at", "quantity", "cost_basis", "proceeds", "fee", "gain", "currency"]
    return pd.DataFrame(rows, columns=columns)


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def save_artifacts(report: TaxReport, out_dir: Path = ARTIFACTS_DIR) -> None:
    out_dir = Path(out_dir)
    ensure_dir(out_dir)

    events_frame(report.events).to_csv(out_dir / "events.csv", index=False)
    year_totals_frame(report.year_totals).to_csv(out_dir / "year_totals.csv")

    summary = {
        "year": report.year,
        "lookback_years": report.lookback_years,
        "currency": report.currency,
        "unadjusted": str(report.unadjusted),
        "adjusted": str(report.adjusted),
        "carried_loss": str(report.carried_loss),
    }
    (out_dir / "summary.json").write_text(json.dumps(summary, indent=2), encoding="utf-8")
    logger.info("artifacts written to %s", out_dir)


def load_artifacts(out_dir: Path = ARTIFACTS_DIR) -> Dict[str, object]:
    out_dir = Path(out_dir)
    data: Dict[str, object] = {}
    data["events"] = pd.read_csv(out_dir / "events.csv", parse_dates=["opened_at", "closed_at"])
    data["year_totals"] = pd.read_csv(out_dir / "year_totals.csv", index_col="year")
    summary = json.loads((out_dir / "summary.json").read_text(encoding="utf-8"))
    summary["unadjusted"] = Decimal(summary["unadjusted"])
    summary["adjusted"] = Decimal(summary["adjusted"])
    summary["carried_loss"] = Decimal(summary.get("carried_loss", "0"))
    data["summary"] = summary
    return data
