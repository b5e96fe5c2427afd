from datetime import date
from decimal import Decimal

import pytest

from cgtcalc.errors import FxRateMissingError, InvalidTransactionError
from cgtcalc.fifo_engine import compute_fifo
from cgtcalc.fx_utils import FxRateTable, apply_rates, to_reporting_currency
from conftest import acq, sell

RATES = "date,rate\n2024-01-02,1.1\n2024-01-05,1.25\n"


def test_to_reporting_currency():
    assert to_reporting_currency(Decimal("108.5"), Decimal("1.085")) == Decimal("100")
    with pytest.raises(InvalidTransactionError):
        to_reporting_currency(Decimal("1"), Decimal("0"))


def test_rate_lookup_falls_back_to_previous_day():
    table = FxRateTable.from_csv_text(RATES)
    assert len(table) == 2
    assert table.rate_for(date(2024, 1, 2)) == Decimal("1.1")
    assert table.rate_for(date(2024, 1, 4)) == Decimal("1.1")  # weekend/holiday gap
    assert table.rate_for(date(2024, 2, 1)) == Decimal("1.25")
    with pytest.raises(FxRateMissingError):
        table.rate_for(date(2024, 1, 1))


def test_bad_rate_files():
    with pytest.raises(InvalidTransactionError):
        FxRateTable.from_csv_text("day,value\n2024-01-01,1\n")
    with pytest.raises(InvalidTransactionError):
        FxRateTable.from_csv_text("date,rate\n2024-01-01,abc\n")
    with pytest.raises(InvalidTransactionError):
        FxRateTable.from_csv_text("date,rate\n2024-01-01,-1\n")


def test_apply_rates_feeds_engine(tmp_path):
    path = tmp_path / "rates.csv"
    path.write_text(RATES, encoding="utf-8")
    table = FxRateTable.from_csv(path)
    txs = apply_rates([acq(date(2024, 1, 2), 10, 11), sell(date(2024, 1, 6), 10, 25)], table)
    assert [t.fx_rate for t in txs] == [Decimal("1.1"), Decimal("1.25")]
    (m,), _ = compute_fifo(txs)
    assert m.cost_basis == Decimal("100")
    assert m.proceeds == Decimal("200")
