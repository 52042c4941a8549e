import pytest

HEADER = (
    "Date,Time,Product,ISIN,Reference,Venue,Quantity,Price,,Local value,,Value,,"
    "Exchange rate,Transaction and/or third,,Total,,Order ID"
)

# Newest first, as DEGIRO exports it.
ROWS = [
    "15-06-2021,10:00,APPLE INC,US0378331005,NDQ,XNAS,-10,150.00,USD,1500.00,USD,1250.00,EUR,1.2000,-0.50,EUR,1249.50,EUR,ord-4",
    "04-01-2021,09:30,APPLE INC,US0378331005,NDQ,XNAS,10,120.00,USD,-1200.00,USD,-1000.00,EUR,1.2000,-0.50,EUR,-1000.50,EUR,ord-3",
    "01-03-2020,11:00,ASML HOLDING,NL0010273215,EAM,XAMS,-5,180.00,EUR,900.00,EUR,900.00,EUR,,-2.00,EUR,898.00,EUR,ord-2",
    "01-02-2020,11:00,ASML HOLDING,NL0010273215,EAM,XAMS,5,200.00,EUR,-1000.00,EUR,-1000.00,EUR,,-2.00,EUR,-1002.00,EUR,ord-1",
]


def write_export(path, rows):
    path.write_text("\n".join([HEADER, *rows]) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def degiro_csv(tmp_path):
    """Small export: ASML loses 104 EUR in 2020, Apple gains 249 EUR in 2021."""
    return write_export(tmp_path / "Transactions.csv", ROWS)


@pytest.fixture
def make_export(tmp_path):
    def _make(rows, name="export.csv"):
        return write_export(tmp_path / name, rows)
    return _make
