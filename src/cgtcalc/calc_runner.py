from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session
from .audit_digest import build_run_manifest, compute_digests
from .errors import TaxYearMismatchError
from .fifo_engine import FifoEngine, Lot, Match
from .models import CalcRun, RealizedMatch
from .rules import RunContext, TaxRule, rule_for
from .schemas import CalcConfig, Transaction, TxKind
from .tax_summary import PeriodReport, TaxSummary, compute_period_report, summarize

LOGGER = logging.getLogger(__name__)


@dataclass
class CalcResult:
    tax_year: int
    cfg: CalcConfig
    matches: List[Match]
    summary: TaxSummary
    periods: List[PeriodReport]
    open_lots: List[Lot] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)


def _resolve_tax_year(transactions: Sequence[Transaction], cfg: CalcConfig) -> int:
    disposal_years = [t.date.year for t in transactions if t.kind is TxKind.DISPOSAL]
    if cfg.tax_year is not None:
        year = cfg.tax_year
    elif disposal_years:
        year = disposal_years[0]
    elif transactions:
        year = transactions[-1].date.year
    else:
        year = datetime.now(timezone.utc).year

    stray = sorted({y for y in disposal_years if y != year})
    if stray:
        raise TaxYearMismatchError(
            f"all disposals must fall in tax year {year}; found disposals in {stray}"
        )
    return year


def run_calculation(transactions: Sequence[Transaction], cfg: Optional[CalcConfig] = None) -> CalcResult:
    """
    Feed -> FIFO engine -> reducer, for one tax year.
    Raises a CgtError subclass on any inconsistency; nothing partial is returned.
    """
    cfg = cfg or CalcConfig()
    rule: TaxRule = rule_for(cfg.jurisdiction)
    txs = list(transactions)
    tax_year = _resolve_tax_year(txs, cfg)
    ctx = RunContext(cfg=cfg, tax_year=tax_year)

    engine = FifoEngine()
    matches = engine.run(txs)

    summary = summarize(matches, rule.exemption_for(ctx), rule.rate_for(ctx))
    periods = [compute_period_report(matches, start, end) for start, end in rule.payment_periods(tax_year)]

    LOGGER.info(
        "Tax year %d: %d transactions, %d matches, net gain %s, tax due %s",
        tax_year, len(txs), len(matches), summary.total_gain, summary.tax_due,
    )
    return CalcResult(
        tax_year=tax_year,
        cfg=cfg,
        matches=matches,
        summary=summary,
        periods=periods,
        open_lots=engine.open_lots(),
        transactions=txs,
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _lots_to_json(lots: Sequence[Lot]) -> str:
    return json.dumps([
        {
            "acquired_date": lot.acquired_date.isoformat(),
            "remaining_quantity": str(lot.remaining_quantity),
            "cost_per_unit": str(lot.cost_per_unit),
            "remaining_cost": str(lot.remaining_cost),
            "fx_rate": str(lot.fx_rate),
            "remaining_native_cost": str(lot.remaining_native_cost),
        }
        for lot in lots
    ])


def _lots_from_json(raw: Optional[str]) -> List[Lot]:
    if not raw:
        return []
    return [
        Lot(
            acquired_date=date.fromisoformat(d["acquired_date"]),
            remaining_quantity=Decimal(d["remaining_quantity"]),
            cost_per_unit=Decimal(d["cost_per_unit"]),
            remaining_cost=Decimal(d["remaining_cost"]),
            fx_rate=Decimal(d["fx_rate"]),
            remaining_native_cost=Decimal(d["remaining_native_cost"]),
        )
        for d in json.loads(raw)
    ]


def save_run(
    session: Session, result: CalcResult, source_filename: Optional[str] = None
) -> Tuple[CalcRun, dict]:
    """
    Persist a finished calculation (run row + one row per match) and stamp it
    with its audit digests. Returns (run, digests).
    """
    started_at = _now_iso()
    manifest = build_run_manifest(result)
    digests = compute_digests(manifest)

    run = CalcRun(
        started_at=started_at,
        jurisdiction=result.cfg.jurisdiction,
        tax_year=result.tax_year,
        source_filename=source_filename,
        params_json=result.cfg.model_dump_json(),
        total_gain=str(result.summary.total_gain),
        chargeable_gain=str(result.summary.chargeable_gain),
        tax_due=str(result.summary.tax_due),
        exemption=str(result.summary.exemption),
        tax_rate=str(result.summary.tax_rate),
        input_hash=digests["input_hash"],
        output_hash=digests["output_hash"],
        manifest_hash=digests["manifest_hash"],
        manifest_json=json.dumps(manifest),
        open_lots_json=_lots_to_json(result.open_lots),
    )
    session.add(run)
    session.flush()  # assigns run.id

    for seq, m in enumerate(result.matches):
        session.add(
            RealizedMatch(
                run_id=run.id,
                seq=seq,
                quantity=str(m.quantity),
                acquired_date=m.acquired_date,
                disposal_date=m.disposal_date,
                cost_basis=str(m.cost_basis),
                proceeds=str(m.proceeds),
                gain=str(m.gain),
                acquired_fx_rate=str(m.acquired_fx_rate),
                disposal_fx_rate=str(m.disposal_fx_rate),
                native_cost_basis=str(m.native_cost_basis),
                native_proceeds=str(m.native_proceeds),
            )
        )
    run.finished_at = _now_iso()
    session.flush()
    LOGGER.info("Saved run %s (%d matches)", run.id, len(result.matches))
    return run, digests


def load_run_matches(session: Session, run_id: int) -> List[Match]:
    rows = (
        session.query(RealizedMatch)
        .filter(RealizedMatch.run_id == run_id)
        .order_by(RealizedMatch.seq.asc())
        .all()
    )
    return [
        Match(
            quantity=Decimal(r.quantity),
            acquired_date=r.acquired_date,
            disposal_date=r.disposal_date,
            cost_basis=Decimal(r.cost_basis),
            proceeds=Decimal(r.proceeds),
            acquired_fx_rate=Decimal(r.acquired_fx_rate),
            disposal_fx_rate=Decimal(r.disposal_fx_rate),
            native_cost_basis=Decimal(r.native_cost_basis) if r.native_cost_basis is not None else None,
            native_proceeds=Decimal(r.native_proceeds) if r.native_proceeds is not None else None,
        )
        for r in rows
    ]


def rebuild_result(session: Session, run: CalcRun) -> CalcResult:
    """
    Re-create the CalcResult of a stored run from its matches, its open lots
    and the exemption/rate it was computed with (input transactions are not needed).
    """
    cfg = CalcConfig.model_validate_json(run.params_json)
    rule = rule_for(run.jurisdiction)
    matches = load_run_matches(session, run.id)
    summary = summarize(matches, Decimal(run.exemption), Decimal(run.tax_rate))
    periods = [compute_period_report(matches, start, end) for start, end in rule.payment_periods(run.tax_year)]
    return CalcResult(
        tax_year=run.tax_year,
        cfg=cfg,
        matches=matches,
        summary=summary,
        periods=periods,
        open_lots=_lots_from_json(run.open_lots_json),
    )
