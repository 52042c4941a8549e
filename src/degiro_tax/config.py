from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path


ARTIFACTS_DIR = Path("artifacts")
REPORTS_DIR = Path("reports")

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


@dataclass(frozen=True)
class ReportConfig:
    year: int | None = None  # None -> previous calendar year
    lookback_years: int = 0  # years of losses carried into `year`
    base_currency: str = "EUR"  # DEGIRO accounts settle in EUR

    def target_year(self) -> int:
        if self.year is not None:
            return self.year
        return date.today().year - 1


@dataclass(frozen=True)
class DegiroFormat:
    # Layout of the "Transactions" export
    date_format: str = "%d-%m-%Y"
    time_format: str = "%H:%M"
    newest_first: bool = True
    encoding: str = "utf-8"


DEFAULT_REPORT = ReportConfig()
DEFAULT_FORMAT = DegiroFormat()
