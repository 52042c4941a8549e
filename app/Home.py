from __future__ import annotations

import sys
from pathlib import Path

# Ensure 'src/' is on sys.path when running from a fresh clone (no package install required)
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


from datetime import date

import streamlit as st

from degiro_tax.config import DEFAULT_REPORT, ReportConfig
from degiro_tax.errors import TaxReportError
from degiro_tax.pipeline import events_frame, run_report
from degiro_tax.tax.aggregate import year_totals_frame


st.set_page_config(
    page_title="DEGIRO capital gains",
    page_icon="🧾",
    layout="wide",
)

st.title("DEGIRO capital gains")
st.caption("Realized gains per year from a DEGIRO transactions export, FIFO lot matching, with carried losses.")

# ---- Inputs ----
uploaded = st.sidebar.file_uploader("Transactions.csv", type=["csv"])
rates_file = st.sidebar.file_uploader("Exchange rates (optional)", type=["csv"], help="Columns: date,currency,rate")
year = st.sidebar.number_input("Tax year", min_value=1990, max_value=2100, value=date.today().year - 1, step=1)
lookback = st.sidebar.number_input("Carry losses from previous years", min_value=0, max_value=50,
                                   value=DEFAULT_REPORT.lookback_years, step=1)
base_currency = st.sidebar.text_input("Base currency", value=DEFAULT_REPORT.base_currency).strip().upper()

if uploaded is None:
    st.info("Upload a DEGIRO transactions export to start.")
    st.stop()

config = ReportConfig(year=int(year), lookback_years=int(lookback), base_currency=base_currency)
try:
    report = run_report(uploaded, config, rates_path=rates_file)
except TaxReportError as err:
    st.error(str(err))
    st.stop()

cur = report.currency or base_currency

c1, c2, c3 = st.columns(3)
c1.metric(f"Profit {report.year}", f"{report.unadjusted:,.2f} {cur}")
c2.metric(f"Adjusted profit {report.year}", f"{report.adjusted:,.2f} {cur}")
c3.metric("Carried losses", f"{report.carried_loss:,.2f} {cur}")

totals = year_totals_frame(report.year_totals)
st.subheader("Net gain by year")
if totals.empty:
    st.write("No sells up to the selected year.")
else:
    st.bar_chart(totals["net_gain"].astype(float), height=260)
    st.dataframe(totals.astype(str), use_container_width=True)

st.subheader(f"Realized in {report.year}")
st.dataframe(
    events_frame(e for e in report.events if e.year == report.year).astype(str),
    use_container_width=True,
)

st.subheader("Open lots")
st.dataframe(
    [{
        "security_id": lot.security_id,
        "opened_at": lot.opened_at,
        "remaining_quantity": str(lot.remaining_quantity),
        "unit_cost": str(lot.unit_cost),
        "currency": lot.currency,
    } for lot in report.open_lots],
    use_container_width=True,
)
