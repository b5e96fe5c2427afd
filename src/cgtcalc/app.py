# app.py
"""
Main FastAPI application.

This file wires together:
- the web server (FastAPI + Uvicorn)
- the CSV transaction feed
- the FIFO engine and the tax summary
- the run-history database

Endpoints:
  GET  /health                       -> liveness check
  GET  /version                      -> app version metadata
  POST /upload/csv                   -> parse CSV and PREVIEW (no calculation)
  POST /calculate                    -> parse CSV, run FIFO + tax summary, save the run
  GET  /history                      -> list saved runs (newest first)
  GET  /history/{run_id}             -> one saved run with its matches
  GET  /history/{run_id}/matches.csv -> match detail as CSV
  GET  /history/{run_id}/summary.pdf -> PDF summary

  Command to start the server: uvicorn cgtcalc.app:app --reload
"""

import logging
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, Response, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from .__about__ import __title__, __version__
from .calc_runner import CalcResult, rebuild_result, run_calculation, save_run
from .csv_normalizer import parse_csv
from .db import SessionLocal, init_db
from .errors import CgtError
from .logging_config import setup_logging
from .models import CalcRun
from .report import detail_csv_text
from .report_pdf import build_summary_pdf
from .schemas import (
    CalcRunList,
    CalcRunOut,
    CalculateResponse,
    CSVPreviewResponse,
    MatchOut,
    PeriodReportOut,
    TaxSummaryOut,
)
from .settings import get_settings

LOGGER = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Application factory & startup
# -----------------------------------------------------------------------------
app = FastAPI(
    title=__title__,
    version=__version__,
    description="FIFO capital-gains calculator for broker share transactions.",
)


@app.on_event("startup")
def on_startup() -> None:
    """
    Runs when the server starts.
    - Configures logging and ensures database tables exist (idempotent).
    """
    setup_logging(get_settings().log_level)
    init_db()


@app.exception_handler(CgtError)
def _cgt_error_handler(request: Request, exc: CgtError) -> JSONResponse:
    # Core errors mean the input can't produce a trustworthy figure
    LOGGER.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": str(exc), "error": type(exc).__name__})


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def _read_csv_upload(file: UploadFile) -> bytes:
    filename = file.filename or ""
    if not filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Please upload a .csv file")
    data = await file.read()
    if len(data) == 0:
        raise HTTPException(status_code=400, detail="Empty file")
    return data


def _result_payload(run_id: int, result: CalcResult, digests: Dict[str, str]) -> CalculateResponse:
    return CalculateResponse(
        run_id=run_id,
        tax_year=result.tax_year,
        jurisdiction=result.cfg.jurisdiction,
        currency=result.cfg.currency,
        matches=[MatchOut.model_validate(m) for m in result.matches],
        periods=[PeriodReportOut.model_validate(p) for p in result.periods],
        summary=TaxSummaryOut.model_validate(result.summary),
        digests=digests,
    )


def _get_run(db: Session, run_id: int) -> CalcRun:
    run = db.get(CalcRun, run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return run


# -----------------------------------------------------------------------------
# Health + version endpoints (simple sanity checks)
# -----------------------------------------------------------------------------
@app.get("/health")
def health() -> Dict[str, str]:
    """Quick liveness check for monitoring or manual testing."""
    return {"status": "ok"}


@app.get("/version")
def version() -> Dict[str, str]:
    """Show the backend name and version (useful to confirm deployments)."""
    return {"name": __title__, "version": __version__}


# -----------------------------------------------------------------------------
# CSV + calculation endpoints
# -----------------------------------------------------------------------------
@app.post("/upload/csv", response_model=CSVPreviewResponse)
async def upload_csv(file: UploadFile = File(...)) -> Dict[str, Any]:
    """
    Accept a CSV upload, parse & validate it, and return a PREVIEW.

    Why preview? Users can see what's parsed and fix errors before calculating.
    """
    data = await _read_csv_upload(file)
    valid_rows, errors = parse_csv(data)
    return {
        "filename": file.filename or "",
        "total_valid": len(valid_rows),
        "total_errors": len(errors),
        "preview_first_5": valid_rows[:5],
        "errors": errors[:5],  # only the first few errors to keep the response small
    }


@app.post("/calculate", response_model=CalculateResponse)
async def calculate(
    file: UploadFile = File(...),
    exemption_amount: Optional[Decimal] = Query(None, ge=0),
    tax_rate: Optional[Decimal] = Query(None, ge=0, le=1),
    tax_year: Optional[int] = Query(None),
    db: Session = Depends(get_db),
) -> CalculateResponse:
    """
    Run the FIFO engine over the uploaded transactions (in file order) and return:
      - every match (acquired/disposed dates, quantity, cost, proceeds, gain)
      - the per-payment-period figures
      - the year's tax summary
    The run is saved with its audit digests; its id is in the response.
    Any invalid row rejects the whole upload.
    """
    data = await _read_csv_upload(file)
    txs, errors = parse_csv(data)
    if errors:
        raise HTTPException(
            status_code=422,
            detail={"message": f"{len(errors)} invalid row(s); nothing was calculated", "errors": errors[:5]},
        )

    try:
        cfg = get_settings().default_config(
            exemption_amount=exemption_amount, tax_rate=tax_rate, tax_year=tax_year
        )
    except ValidationError as ve:
        raise HTTPException(status_code=422, detail=ve.errors(include_url=False, include_context=False))

    result = run_calculation(txs, cfg)
    try:
        run, digests = save_run(db, result, source_filename=file.filename)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _result_payload(run.id, result, digests)


# -----------------------------------------------------------------------------
# History endpoints
# -----------------------------------------------------------------------------
@app.get("/history", response_model=CalcRunList)
def list_runs(limit: int = Query(50, ge=1, le=500), db: Session = Depends(get_db)) -> CalcRunList:
    runs = db.query(CalcRun).order_by(CalcRun.id.desc()).limit(limit).all()
    return CalcRunList(items=[CalcRunOut.model_validate(r) for r in runs])


@app.get("/history/{run_id}", response_model=CalculateResponse)
def get_run(run_id: int, db: Session = Depends(get_db)) -> CalculateResponse:
    run = _get_run(db, run_id)
    result = rebuild_result(db, run)
    digests = {
        "input_hash": run.input_hash or "",
        "output_hash": run.output_hash or "",
        "manifest_hash": run.manifest_hash or "",
    }
    return _result_payload(run.id, result, digests)


@app.get("/history/{run_id}/matches.csv")
def export_matches_csv(run_id: int, db: Session = Depends(get_db)) -> Response:
    run = _get_run(db, run_id)
    result = rebuild_result(db, run)
    return Response(
        content=detail_csv_text(result.matches),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="cgt_matches_run_{run_id}.csv"'},
    )


@app.get("/history/{run_id}/summary.pdf")
def export_summary_pdf(run_id: int, db: Session = Depends(get_db)) -> StreamingResponse:
    run = _get_run(db, run_id)
    pdf = build_summary_pdf(rebuild_result(db, run))
    return StreamingResponse(
        BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="cgt_summary_{run.tax_year}_run_{run_id}.pdf"'},
    )
