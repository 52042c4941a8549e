from __future__ import annotations

import sys
from pathlib import Path

# Ensure 'src/' is on sys.path when running from a fresh clone (no package install required)
ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


from degiro_tax.config import ARTIFACTS_DIR, REPORTS_DIR
from degiro_tax.pipeline import load_artifacts
from degiro_tax.reporting import render_html_page


def main() -> None:
    """Render the last saved artifacts (see `degiro-tax --artifacts`) as HTML."""
    if not (ARTIFACTS_DIR / "summary.json").exists():
        print("No artifacts found; run: degiro-tax Transactions.csv --artifacts artifacts")
        sys.exit(1)

    d = load_artifacts(ARTIFACTS_DIR)
    render_html_page(d["summary"], d["year_totals"], d["events"], REPORTS_DIR)

    print("Reports written to ./reports (open reports/index.html)")


if __name__ == "__main__":
    main()
