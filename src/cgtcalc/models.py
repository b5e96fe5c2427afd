from __future__ import annotations
import datetime
from sqlalchemy import Date, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# ---------- Base ----------
class Base(DeclarativeBase):
    pass

# ---------- ORM models ----------
# Amounts are stored as plain decimal strings so a reloaded run reproduces
# the exact figures the engine produced (no fixed-scale rounding).

class CalcRun(Base):
    __tablename__ = "calc_runs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    started_at: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    finished_at: Mapped[str | None] = mapped_column(String(32), nullable=True)
    jurisdiction: Mapped[str] = mapped_column(String(8), nullable=False)
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    source_filename: Mapped[str | None] = mapped_column(String(256), nullable=True)
    params_json: Mapped[str] = mapped_column(Text, nullable=False)

    total_gain: Mapped[str] = mapped_column(String(64), nullable=False)
    chargeable_gain: Mapped[str] = mapped_column(String(64), nullable=False)
    tax_due: Mapped[str] = mapped_column(String(64), nullable=False)
    exemption: Mapped[str] = mapped_column(String(64), nullable=False)
    tax_rate: Mapped[str] = mapped_column(String(16), nullable=False)

    input_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    output_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    manifest_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    manifest_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    # unmatched lots left at the end of the run, as a JSON list
    open_lots_json: Mapped[str | None] = mapped_column(Text, nullable=True)

# One row per FIFO match of a run, in engine order (seq)
class RealizedMatch(Base):
    __tablename__ = "realized_matches"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[str] = mapped_column(String(64), nullable=False)
    acquired_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    disposal_date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    cost_basis: Mapped[str] = mapped_column(String(64), nullable=False)
    proceeds: Mapped[str] = mapped_column(String(64), nullable=False)
    gain: Mapped[str] = mapped_column(String(64), nullable=False)
    acquired_fx_rate: Mapped[str] = mapped_column(String(64), nullable=False, default="1")
    disposal_fx_rate: Mapped[str] = mapped_column(String(64), nullable=False, default="1")
    native_cost_basis: Mapped[str | None] = mapped_column(String(64), nullable=True)
    native_proceeds: Mapped[str | None] = mapped_column(String(64), nullable=True)

Index("idx_realized_matches_run_seq", RealizedMatch.run_id, RealizedMatch.seq)
