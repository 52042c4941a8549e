"""Command line entry point.

Usage:
    degiro-tax Transactions.csv --year 2021 --carry-years 5
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_REPORT, ReportConfig
from .errors import TaxReportError
from .log import setup_logging
from .pipeline import run_report, save_artifacts
from .reporting import format_summary, render_html_report

logger = logging.getLogger(__name__)


def non_negative_int(value: str) -> int:
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {n}")
    return n


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="degiro-tax",
        description="Annual realized capital gains from a DEGIRO transactions export (FIFO).",
    )
    parser.add_argument("transactions", type=Path, help="DEGIRO Transactions.csv export")
    parser.add_argument("--year", type=int, default=None, help="tax year (default: previous calendar year)")
    parser.add_argument(
        "--carry-years",
        type=non_negative_int,
        default=DEFAULT_REPORT.lookback_years,
        help="how many earlier years of net losses offset the tax year (default: %(default)s)",
    )
    parser.add_argument(
        "--base-currency",
        default=DEFAULT_REPORT.base_currency,
        help="currency gains are reported in (default: %(default)s)",
    )
    parser.add_argument(
        "--rates",
        type=Path,
        default=None,
        help="CSV of date,currency,rate; default: rates quoted in the export",
    )
    parser.add_argument("--artifacts", type=Path, default=None, help="write events/year totals/summary here")
    parser.add_argument("--html", type=Path, default=None, help="write an HTML report into this directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    config = ReportConfig(
        year=args.year,
        lookback_years=args.carry_years,
        base_currency=args.base_currency.upper(),
    )
    try:
        report = run_report(args.transactions, config, rates_path=args.rates)
    except TaxReportError as err:
        if args.verbose:
            logger.exception("report failed")
        else:
            logger.error("%s", err)
        return 1
    except FileNotFoundError as err:
        logger.error("%s", err)
        return 1

    for line in format_summary(report):
        print(line)

    if args.artifacts is not None:
        save_artifacts(report, args.artifacts)
    if args.html is not None:
        page = render_html_report(report, args.html)
        print(f"HTML report written to {page}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
