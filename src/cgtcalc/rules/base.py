from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Protocol, Tuple
from cgtcalc.schemas import CalcConfig

Period = Tuple[date, date]


@dataclass
class RunContext:
    cfg: CalcConfig
    tax_year: int


class TaxRule(Protocol):
    code: str

    def exemption_for(self, ctx: RunContext) -> Decimal: ...
    def rate_for(self, ctx: RunContext) -> Decimal: ...
    def payment_periods(self, tax_year: int) -> List[Period]: ...
