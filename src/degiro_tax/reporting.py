from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .config import REPORTS_DIR
from .pipeline import TaxReport, ensure_dir, events_frame
from .tax.aggregate import year_totals_frame

logger = logging.getLogger(__name__)


def format_summary(report: TaxReport) -> List[str]:
    cur = f" {report.currency}" if report.currency else ""
    lines = [
        f"profit for {report.year}: {report.unadjusted.normalize():f}{cur}",
        f"adjusted profit for {report.year}: {report.adjusted.normalize():f}{cur}"
        f" (losses carried from the previous {report.lookback_years} years: {report.carried_loss.normalize():f}{cur})",
    ]
    if report.open_lots:
        lines.append(f"open lots after {report.year}: {len(report.open_lots)}")
    return lines


def write_html(path: Path, title: str, body_html: str) -> None:
    html = f"""<!doctype html>
<html lang=\"en\">
<head>
  <meta charset=\"utf-8\">
  <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\">
  <title>{title}</title>
  <style>
    body {{ font-family: -apple-system, Segoe UI, Roboto, Helvetica, Arial, sans-serif; margin: 28px; }}
    .grid {{ display: grid; grid-template-columns: repeat(2, minmax(0, 1fr)); gap: 18px; }}
    .card {{ border: 1px solid #e6e6e6; border-radius: 10px; padding: 16px; }}
    img {{ max-width: 100%; height: auto; border-radius: 8px; }}
    table {{ border-collapse: collapse; width: 100%; }}
    th, td {{ border-bottom: 1px solid #eee; padding: 8px; text-align: left; font-size: 14px; }}
    th {{ background: #fafafa; }}
    .muted {{ color: #666; font-size: 14px; }}
  </style>
</head>
<body>
{body_html}
</body>
</html>
"""
    path.write_text(html, encoding="utf-8")


def save_year_chart_png(year_totals: pd.DataFrame, out: Path, title: str) -> None:
    """Bar chart of net gain per year, losses in red."""
    net = year_totals["net_gain"].astype(float)
    colours = np.where(net.to_numpy() < 0, "tab:red", "tab:green")
    plt.figure()
    plt.bar([str(y) for y in net.index], net.to_numpy(), color=colours)
    plt.axhline(0.0, color="#999", linewidth=0.8)
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out, dpi=160)
    plt.close()


def render_html_page(
    summary: Dict[str, Any],
    totals: pd.DataFrame,
    events: pd.DataFrame,
    out_dir: Path = REPORTS_DIR,
) -> Path:
    """Write `index.html` plus its chart into `out_dir` and return the page path.

    `summary` holds `year`, `lookback_years`, `currency`, `unadjusted`,
    `adjusted` and `carried_loss`; `totals` and `events` are shaped like
    `year_totals_frame` and `events_frame`. Only events closed in the target
    year are listed.
    """
    out_dir = Path(out_dir)
    ensure_dir(out_dir)

    year = summary["year"]
    cur = summary.get("currency") or ""

    chart_png = out_dir / "net_gain_by_year.png"
    if not totals.empty:
        save_year_chart_png(totals, chart_png, "Realized net gain by year")
        chart_html = f'<img src="{chart_png.name}" alt="Net gain by year">'
    else:
        chart_html = '<p class="muted">No sells in the ledger.</p>'

    in_year = events[pd.to_datetime(events["closed_at"]).dt.year == year]

    index = out_dir / "index.html"
    write_html(
        index,
        f"Capital gains {year}",
        f"""
<h1>Capital gains {year}</h1>
<p class="muted">FIFO lot matching | losses carried from the previous {summary["lookback_years"]} years</p>
<div class="grid">
  <div class="card">
    <h2>Figures</h2>
    <p>Unadjusted: <b>{summary["unadjusted"]:,.2f} {cur}</b></p>
    <p>Adjusted: <b>{summary["adjusted"]:,.2f} {cur}</b></p>
    <p class="muted">Carried losses: {summary["carried_loss"]:,.2f} {cur}</p>
  </div>
  <div class="card">
    <h2>Net gain by year</h2>
    {chart_html}
  </div>
</div>
<div class="card" style="margin-top:18px">
  <h2>Per-year totals</h2>
  {totals.to_html()}
</div>
<div class="card" style="margin-top:18px">
  <h2>Realized in {year}</h2>
  {in_year.to_html(index=False)}
</div>
""",
    )
    logger.info("HTML report written to %s", index)
    return index


def render_html_report(report: TaxReport, out_dir: Path = REPORTS_DIR) -> Path:
    summary = {
        "year": report.year,
        "lookback_years": report.lookback_years,
        "currency": report.currency,
        "unadjusted": report.unadjusted,
        "adjusted": report.adjusted,
        "carried_loss": report.carried_loss,
    }
    return render_html_page(
        summary,
        year_totals_frame(report.year_totals),
        events_frame(report.events),
        out_dir,
    )
