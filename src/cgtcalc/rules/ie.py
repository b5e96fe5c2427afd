from __future__ import annotations
from datetime import date
from decimal import Decimal
from typing import List
from .base import Period, RunContext, TaxRule

ANNUAL_EXEMPTION_EUR = Decimal("1270")
CGT_RATE = Decimal("0.33")


class IeRule(TaxRule):
    """
    Irish CGT: flat 33% on gains above a 1,270 EUR annual exemption.
    Gains of 1 Jan - 30 Nov are paid by 15 Dec, December gains by 31 Jan,
    so the report shows the two periods separately.
    """

    code = "IE"

    def exemption_for(self, ctx: RunContext) -> Decimal:
        if ctx.cfg.exemption_amount is not None:
            return ctx.cfg.exemption_amount
        return ANNUAL_EXEMPTION_EUR

    def rate_for(self, ctx: RunContext) -> Decimal:
        if ctx.cfg.tax_rate is not None:
            return ctx.cfg.tax_rate
        return CGT_RATE

    def payment_periods(self, tax_year: int) -> List[Period]:
        return [
            (date(tax_year, 1, 1), date(tax_year, 11, 30)),
            (date(tax_year, 12, 1), date(tax_year, 12, 31)),
        ]
