from degiro_tax.cli import create_parser, main


def test_prints_both_figures(degiro_csv, capsys):
    code = main([str(degiro_csv), "--year", "2021", "--carry-years", "1"])
    out = capsys.readouterr().out
    assert code == 0
    assert "profit for 2021: 249 EUR" in out
    assert "adjusted profit for 2021: 145 EUR" in out


def test_writes_artifacts_and_html(degiro_csv, tmp_path, capsys):
    artifacts = tmp_path / "artifacts"
    html = tmp_path / "html"
    code = main([str(degiro_csv), "--year", "2021", "--artifacts", str(artifacts), "--html", str(html)])
    assert code == 0
    assert (artifacts / "summary.json").exists()
    assert (html / "index.html").exists()
    assert "HTML report written" in capsys.readouterr().out


def test_report_error_exits_with_1(make_export, caplog):
    path = make_export([
        "15-06-2021,10:00,ASML HOLDING,NL0010273215,EAM,XAMS,-5,180.00,EUR,900.00,EUR,900.00,EUR,,-2.00,EUR,898.00,EUR,ord-2",
    ])
    assert main([str(path), "--year", "2021"]) == 1
    assert "cannot sell 5 of NL0010273215" in caplog.text


def test_missing_file_exits_with_1(tmp_path):
    assert main([str(tmp_path / "nope.csv"), "--year", "2021"]) == 1


def test_defaults():
    args = create_parser().parse_args(["t.csv"])
    assert args.year is None
    assert args.carry_years == 0
    assert args.base_currency == "EUR"


def test_header_only_export_prints_zero(make_export, capsys):
    code = main([str(make_export([])), "--year", "2021", "--carry-years", "2"])
    out = capsys.readouterr().out
    assert code == 0
    assert "profit for 2021: 0 EUR" in out
    assert "adjusted profit for 2021: 0 EUR" in out
