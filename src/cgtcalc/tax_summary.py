# tax_summary.py
"""
Reduce a list of matches to the year's tax figures.

summarize() is a pure function: the exemption and the flat rate come in as
arguments, so the reducer knows nothing about any particular jurisdiction.
compute_period_report() slices the same matches by disposal date, which the
report uses for the separate payment periods of a tax year.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .fifo_engine import Match

ZERO = Decimal("0")


@dataclass(frozen=True)
class TaxSummary:
    total_proceeds: Decimal
    total_cost: Decimal
    total_gains: Decimal  # sum of positive match gains
    total_losses: Decimal  # sum of negative match gains, as a positive number
    total_gain: Decimal  # net: gains - losses
    exemption: Decimal  # configured amount, unmodified
    exemption_applied: Decimal
    chargeable_gain: Decimal
    tax_rate: Decimal
    tax_due: Decimal


@dataclass(frozen=True)
class PeriodReport:
    start: Optional[date]
    end: Optional[date]
    proceeds: Decimal
    gains: Decimal
    losses: Decimal
    # same figures in the transaction currency, before conversion
    native_proceeds: Decimal = ZERO
    native_gains: Decimal = ZERO
    native_losses: Decimal = ZERO

    @property
    def net_gain(self) -> Decimal:
        return self.gains - self.losses

    @property
    def native_net_gain(self) -> Decimal:
        return self.native_gains - self.native_losses


def summarize(matches: Sequence[Match], exemption_amount: Decimal, tax_rate: Decimal) -> TaxSummary:
    """
    totalGain = sum of match gains (losses negative)
    chargeable = max(0, totalGain - exemption)
    tax due   = chargeable * rate
    An empty match list is not an error; everything is zero.
    """
    total_gain = ZERO
    total_gains = ZERO
    total_losses = ZERO
    total_proceeds = ZERO
    total_cost = ZERO
    for m in matches:
        g = m.gain
        total_gain += g
        if g >= 0:
            total_gains += g
        else:
            total_losses -= g
        total_proceeds += m.proceeds
        total_cost += m.cost_basis

    chargeable = max(ZERO, total_gain - exemption_amount)
    return TaxSummary(
        total_proceeds=total_proceeds,
        total_cost=total_cost,
        total_gains=total_gains,
        total_losses=total_losses,
        total_gain=total_gain,
        exemption=exemption_amount,
        exemption_applied=min(exemption_amount, max(ZERO, total_gain)),
        chargeable_gain=chargeable,
        tax_rate=tax_rate,
        tax_due=chargeable * tax_rate,
    )


def compute_period_report(
    matches: Iterable[Match],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> PeriodReport:
    """Aggregate the matches disposed of between start and end (both inclusive, None = open)."""
    proceeds = gains = losses = ZERO
    native_proceeds = native_gains = native_losses = ZERO
    for m in matches:
        if start is not None and m.disposal_date < start:
            continue
        if end is not None and m.disposal_date > end:
            continue
        proceeds += m.proceeds
        g = m.gain
        if g >= 0:
            gains += g
        else:
            losses -= g
        native_proceeds += m.native_proceeds
        ng = m.native_gain
        if ng >= 0:
            native_gains += ng
        else:
            native_losses -= ng
    return PeriodReport(
        start=start,
        end=end,
        proceeds=proceeds,
        gains=gains,
        losses=losses,
        native_proceeds=native_proceeds,
        native_gains=native_gains,
        native_losses=native_losses,
    )
