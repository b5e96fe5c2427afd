import pytest

from cgtcalc.cli import main

TX_CSV = """date,type,quantity,unit_value
2024-01-01,buy,100,10
2024-03-01,buy,50,12
2024-06-01,sell,120,20
2024-12-10,sell,30,60
"""


def test_cli_prints_report_and_writes_detail(tmp_path, capsys):
    src = tmp_path / "tx.csv"
    src.write_text(TX_CSV, encoding="utf-8")
    detail = tmp_path / "detail.csv"

    assert main([str(src), "--detail-csv", str(detail)]) == 0

    out = capsys.readouterr().out
    # 1160 (June) + 30 * (60 - 12) = 1440 in December
    assert "Net gain (Gain-Loss): €2600.00" in out
    assert "Taxable gain (amount above exemption): €1330.00" in out
    assert "Tax to pay (33.00%): €438.90" in out
    assert detail.exists()


def test_cli_overrides_and_pdf(tmp_path, capsys):
    src = tmp_path / "tx.csv"
    src.write_text(TX_CSV, encoding="utf-8")
    pdf = tmp_path / "summary.pdf"

    rc = main([str(src), "--no-detail-csv", "--exemption", "0", "--rate", "0.5", "--pdf", str(pdf)])
    assert rc == 0
    assert "Tax to pay (50.00%): €1300.00" in capsys.readouterr().out
    assert pdf.read_bytes().startswith(b"%PDF")


def test_cli_reports_insufficient_lots(tmp_path, caplog):
    src = tmp_path / "tx.csv"
    src.write_text("date,type,quantity,unit_value\n2024-01-01,buy,5,10\n2024-02-01,sell,10,12\n", encoding="utf-8")
    assert main([str(src), "--no-detail-csv"]) == 1
    assert "2024-02-01" in caplog.text


def test_cli_missing_file(tmp_path):
    assert main([str(tmp_path / "nope.csv"), "--no-detail-csv"]) == 1


def test_cli_fx_rates(tmp_path, capsys):
    src = tmp_path / "tx.csv"
    src.write_text("date,type,quantity,unit_value\n2024-01-02,buy,10,11\n2024-01-08,sell,10,25\n", encoding="utf-8")
    rates = tmp_path / "rates.csv"
    rates.write_text("date,rate\n2024-01-02,1.1\n2024-01-05,1.25\n", encoding="utf-8")
    assert main([str(src), "--no-detail-csv", "--fx-rates", str(rates)]) == 0
    assert "Net gain (Gain-Loss): €100.00" in capsys.readouterr().out


def test_cli_non_utf8_file_exits_1(tmp_path, caplog):
    src = tmp_path / "tx.csv"
    src.write_bytes("date,type,quantity,unit_value,memo\n2024-01-01,buy,1,10,café\n".encode("latin-1"))
    assert main([str(src), "--no-detail-csv"]) == 1
    assert "not valid" in caplog.text


@pytest.mark.parametrize("option", ["--exemption", "--rate"])
@pytest.mark.parametrize("value", ["abc", "nan"])
def test_cli_bad_number_is_a_usage_error(tmp_path, capsys, option, value):
    src = tmp_path / "tx.csv"
    src.write_text(TX_CSV, encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main([str(src), option, value])
    assert exc.value.code == 2
    assert "invalid number" in capsys.readouterr().err
