# report.py
"""
Console report and match-detail CSV.

Rounding policy: every figure is kept exact until it is displayed here; the
text report quantizes to `round_dp` places with ROUND_HALF_EVEN (bankers'
rounding). The detail CSV keeps full precision so it can be re-added exactly.
"""

from __future__ import annotations

import csv
import logging
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal
from io import StringIO
from pathlib import Path
from typing import Iterable, List, Optional

from .calc_runner import CalcResult
from .fifo_engine import Match
from .tax_summary import PeriodReport, compute_period_report

LOGGER = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£"}

DETAIL_HEADER = [
    "Acquired Date",
    "Disposal Date",
    "Quantity",
    "Cost Basis",
    "Proceeds",
    "Gain",
    "Acquired FX Rate",
    "Disposal FX Rate",
    "Native Cost Basis",
    "Native Proceeds",
    "Native Gain",
]


def _symbol(code: str) -> str:
    return CURRENCY_SYMBOLS.get(code, code + " ")


def fmt_money(x: Decimal, dp: int = 2) -> str:
    return format(x.quantize(Decimal(1).scaleb(-dp), rounding=ROUND_HALF_EVEN), "f")


def dec_to_str(x: Decimal) -> str:
    s = format(x, "f")
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s or "0"


def _period_header(start: Optional[date], end: Optional[date]) -> str:
    if start is None or end is None:
        return "=== TAX REPORT FOR ALL DISPOSALS ==="
    return f"=== TAX REPORT FOR PERIOD {start.isoformat()} TO {end.isoformat()} ==="


def _period_lines(p: PeriodReport, sym: str, dp: int) -> List[str]:
    return [
        f"Total proceeds: {sym}{fmt_money(p.proceeds, dp)}",
        f"Total gain: {sym}{fmt_money(p.gains, dp)}",
        f"Total loss: {sym}{fmt_money(p.losses, dp)}",
        f"Net gain (Gain-Loss): {sym}{fmt_money(p.net_gain, dp)}",
    ]


def _native_lines(p: PeriodReport, code: str, dp: int) -> List[str]:
    sym = _symbol(code)
    return [
        f"Total proceeds ({code}): {sym}{fmt_money(p.native_proceeds, dp)}",
        f"Total gain ({code}): {sym}{fmt_money(p.native_gains, dp)}",
        f"Total loss ({code}): {sym}{fmt_money(p.native_losses, dp)}",
        f"Net gain ({code}): {sym}{fmt_money(p.native_net_gain, dp)}",
        "",
    ]


def is_converted(matches: Iterable[Match]) -> bool:
    """True when any match was converted from another currency (fx rate other than 1)."""
    return any(m.acquired_fx_rate != 1 or m.disposal_fx_rate != 1 for m in matches)


def format_report(result: CalcResult) -> str:
    """
    Render the per-period reports followed by the full-year figures.
    When amounts were converted, each block first shows the transaction
    currency figures, then the reporting currency ones.
    """
    dp = result.cfg.round_dp
    sym = _symbol(result.cfg.currency)
    native = result.cfg.transaction_currency if is_converted(result.matches) else None
    s = result.summary
    lines: List[str] = []

    for p in result.periods:
        lines += ["", _period_header(p.start, p.end), ""]
        if native:
            lines += _native_lines(p, native, dp)
        lines += _period_lines(p, sym, dp)

    lines += ["", f"=== TAX REPORT FOR ENTIRE FISCAL YEAR {result.tax_year} ===", ""]
    if native:
        lines += _native_lines(compute_period_report(result.matches), native, dp)
    lines += [
        f"Total proceeds: {sym}{fmt_money(s.total_proceeds, dp)}",
        f"Total cost basis: {sym}{fmt_money(s.total_cost, dp)}",
        f"Total gain: {sym}{fmt_money(s.total_gains, dp)}",
        f"Total loss: {sym}{fmt_money(s.total_losses, dp)}",
        f"Net gain (Gain-Loss): {sym}{fmt_money(s.total_gain, dp)}",
        "",
        f"Annual exemption: {sym}{fmt_money(s.exemption, dp)} (used: {sym}{fmt_money(s.exemption_applied, dp)})",
        f"Taxable gain (amount above exemption): {sym}{fmt_money(s.chargeable_gain, dp)}",
        f"Tax to pay ({fmt_money(s.tax_rate * 100, 2)}%): {sym}{fmt_money(s.tax_due, dp)}",
    ]
    if result.open_lots:
        held = sum((lot.remaining_quantity for lot in result.open_lots), Decimal("0"))
        lines += ["", f"Shares still held: {dec_to_str(held)} in {len(result.open_lots)} lot(s)"]
    return "\n".join(lines) + "\n"


def detail_csv_text(matches: Iterable[Match]) -> str:
    buf = StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(DETAIL_HEADER)
    for m in matches:
        writer.writerow([
            m.acquired_date.isoformat(),
            m.disposal_date.isoformat(),
            dec_to_str(m.quantity),
            dec_to_str(m.cost_basis),
            dec_to_str(m.proceeds),
            dec_to_str(m.gain),
            dec_to_str(m.acquired_fx_rate),
            dec_to_str(m.disposal_fx_rate),
            dec_to_str(m.native_cost_basis),
            dec_to_str(m.native_proceeds),
            dec_to_str(m.native_gain),
        ])
    return buf.getvalue()


def write_detail_csv(matches: Iterable[Match], path: str | Path) -> Path:
    """Write one row per match to `path` and return the path."""
    out = Path(path)
    out.write_text(detail_csv_text(matches), encoding="utf-8")
    LOGGER.info("The match detail was written as CSV to %s", out)
    return out
