from __future__ import annotations
import os, sys, tempfile
from datetime import date
from decimal import Decimal

# Run from a checkout without `pip install -e .`
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

# Point the run-history DB at a throwaway file before cgtcalc.db is imported
_TMP_DIR = tempfile.mkdtemp(prefix="cgtcalc-tests-")
os.environ["CGTCALC_DB_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
for _name in ("CGTCALC_EXEMPTION", "CGTCALC_TAX_RATE"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402

from cgtcalc.schemas import Transaction, TxKind  # noqa: E402


def acq(day: date, qty, unit, **kw) -> Transaction:
    return Transaction(date=day, kind=TxKind.ACQUISITION, quantity=Decimal(str(qty)), unit_value=Decimal(str(unit)), **kw)


def sell(day: date, qty, unit, **kw) -> Transaction:
    return Transaction(date=day, kind=TxKind.DISPOSAL, quantity=Decimal(str(qty)), unit_value=Decimal(str(unit)), **kw)


@pytest.fixture
def scenario_txs() -> list[Transaction]:
    """100 @ 10 (Jan 1), 50 @ 12 (Mar 1), sell 120 @ 20 (Jun 1), sell 30 @ 15 (Sep 1)."""
    return [
        acq(date(2024, 1, 1), 100, 10),
        acq(date(2024, 3, 1), 50, 12),
        sell(date(2024, 6, 1), 120, 20),
        sell(date(2024, 9, 1), 30, 15),
    ]
