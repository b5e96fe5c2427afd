# fx_utils.py
"""
Exchange rates supplied by the user (no downloading here).

The rate file is a plain CSV with `date,rate` columns, where rate is the
number of transaction-currency units per one reporting-currency unit, e.g.
the ECB's daily USD per EUR reference rate.
"""

from __future__ import annotations

import bisect
import csv
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from io import StringIO
from pathlib import Path
from typing import Dict, Iterable, List

from .errors import FxRateMissingError, InvalidTransactionError
from .schemas import Transaction

LOGGER = logging.getLogger(__name__)


def to_reporting_currency(amount: Decimal, rate: Decimal) -> Decimal:
    """
    Convert a transaction-currency amount given units-per-reporting-unit.
    If EURUSD = 1.085, then 108.5 USD -> 100 EUR (108.5 / 1.085).
    """
    if rate <= 0:
        raise InvalidTransactionError(f"exchange rate must be positive, got {rate}")
    return amount / rate


class FxRateTable:
    """Daily rates with previous-business-day fallback."""

    def __init__(self, rates: Dict[date, Decimal]) -> None:
        for day, rate in rates.items():
            if rate <= 0:
                raise InvalidTransactionError(f"exchange rate for {day.isoformat()} must be positive, got {rate}")
        self._rates = dict(rates)
        self._days: List[date] = sorted(self._rates)

    def __len__(self) -> int:
        return len(self._days)

    @classmethod
    def from_csv_text(cls, text: str) -> "FxRateTable":
        reader = csv.DictReader(StringIO(text))
        fields = {(f or "").strip().lower(): f for f in (reader.fieldnames or [])}
        if "date" not in fields or "rate" not in fields:
            raise InvalidTransactionError("FX rate file must have 'date' and 'rate' columns")
        rates: Dict[date, Decimal] = {}
        for i, row in enumerate(reader, start=2):
            raw_day = (row[fields["date"]] or "").strip()
            raw_rate = (row[fields["rate"]] or "").strip()
            if not raw_day and not raw_rate:
                continue
            try:
                rates[date.fromisoformat(raw_day)] = Decimal(raw_rate)
            except (ValueError, InvalidOperation):
                raise InvalidTransactionError(
                    f"FX rate file row {i}: cannot read date {raw_day!r} / rate {raw_rate!r}"
                ) from None
        return cls(rates)

    @classmethod
    def from_csv(cls, path: str | Path) -> "FxRateTable":
        table = cls.from_csv_text(Path(path).read_text(encoding="utf-8-sig"))
        LOGGER.info("Loaded %d exchange rates from %s", len(table), path)
        return table

    def rate_for(self, day: date) -> Decimal:
        """
        Return the rate for `day`.
        If the exact date is missing (weekend, holiday), use the latest date before it.
        """
        exact = self._rates.get(day)
        if exact is not None:
            return exact
        idx = bisect.bisect_right(self._days, day)
        if idx == 0:
            raise FxRateMissingError(f"no exchange rate on or before {day.isoformat()}")
        prior = self._days[idx - 1]
        LOGGER.debug("No rate for %s; using %s", day, prior)
        return self._rates[prior]


def apply_rates(transactions: Iterable[Transaction], table: FxRateTable) -> List[Transaction]:
    """Return copies of `transactions` with fx_rate taken from `table` by date."""
    return [tx.model_copy(update={"fx_rate": table.rate_for(tx.date)}) for tx in transactions]
