from __future__ import annotations

"""
Pydantic schemas (data models) shared by the feed, the engine and the API.
- Transaction is the typed input contract of the FIFO engine.
- CalcConfig carries the jurisdiction, exemption and rate for a run.
- The *Out / *Response models define what the API returns.

Core ideas:
- Money and share quantities are Decimal everywhere (never float).
- Schemas stay separate from the ORM models in models.py.
- Schemas only coerce types; business checks (positive quantity, non-negative
  value) live in fifo_engine.validate_transaction so they raise the calculator's
  own InvalidTransactionError.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


class TxKind(str, Enum):
    ACQUISITION = "ACQUISITION"
    DISPOSAL = "DISPOSAL"


# Broker exports use many labels for the same two events.
KIND_SYNONYMS = {
    "ACQUISITION": TxKind.ACQUISITION,
    "ACQUIRE": TxKind.ACQUISITION,
    "BUY": TxKind.ACQUISITION,
    "PURCHASE": TxKind.ACQUISITION,
    "VEST": TxKind.ACQUISITION,
    "DISPOSAL": TxKind.DISPOSAL,
    "DISPOSE": TxKind.DISPOSAL,
    "SELL": TxKind.DISPOSAL,
    "SALE": TxKind.DISPOSAL,
}

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")


def _dec_to_str(v: Decimal | None) -> str | None:
    if v is None:
        return None
    s = format(v, "f")
    return s.rstrip("0").rstrip(".") if "." in s else s


class Transaction(BaseModel):
    """
    One acquisition or disposal event, already normalized by the feed.

    Fields:
      date: calendar date of the event.
      kind: ACQUISITION or DISPOSAL.
      quantity: number of shares (fractional allowed).
      total_value: total cost (acquisition) or gross proceeds (disposal),
                   in the transaction currency.
      unit_value: per-share alternative to total_value; total_value is derived
                  from it when missing.
      fees: broker fees; added to cost on acquisition, deducted from proceeds
            on disposal.
      fx_rate: transaction-currency units per one reporting-currency unit
               (e.g. USD per EUR). 1 when already in reporting currency.
      memo: free text (broker record type, plan name, ...).
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date
    kind: TxKind
    quantity: Decimal
    total_value: Decimal
    unit_value: Optional[Decimal] = None
    fees: Decimal = Decimal("0")
    fx_rate: Decimal = Decimal("1")
    memo: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_total_value(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("total_value") in (None, "") and data.get("unit_value") not in (None, ""):
            try:
                data = {
                    **data,
                    "total_value": Decimal(str(data["unit_value"])) * Decimal(str(data["quantity"])),
                }
            except (ArithmeticError, KeyError, ValueError):
                # leave total_value missing so pydantic reports the field
                pass
        return data

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, v: Any) -> Any:
        if isinstance(v, TxKind):
            return v
        s = str(v).strip().upper().replace("-", "_").replace(" ", "_")
        kind = KIND_SYNONYMS.get(s)
        if kind is None:
            raise ValueError(f"unknown transaction type: {v!r}")
        return kind

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v: Any) -> Any:
        if isinstance(v, dt.datetime):
            return v.date()
        if not isinstance(v, str):
            return v
        s = v.strip()
        for fmt in _DATE_FORMATS:
            try:
                return dt.datetime.strptime(s, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"unrecognized date {v!r}; expected YYYY-MM-DD or MM/DD/YYYY")

    @field_validator("fees", "fx_rate", mode="before")
    @classmethod
    def _blank_to_default(cls, v: Any, info) -> Any:
        if v is None or (isinstance(v, str) and v.strip() == ""):
            return Decimal("1") if info.field_name == "fx_rate" else Decimal("0")
        return v

    @property
    def native_net_value(self) -> Decimal:
        """Cost incl. fees (acquisition) or proceeds net of fees (disposal), in the transaction currency."""
        if self.kind is TxKind.ACQUISITION:
            return self.total_value + self.fees
        return self.total_value - self.fees

    @property
    def net_value(self) -> Decimal:
        """native_net_value converted to the reporting currency."""
        return self.native_net_value / self.fx_rate

    @field_serializer("quantity", "total_value", "unit_value", "fees", "fx_rate")
    def _ser_dec(self, v: Decimal | None) -> str | None:
        return _dec_to_str(v)


class CalcConfig(BaseModel):
    """
    Configuration for one run.

    exemption_amount / tax_rate default to the jurisdiction rule's values when
    left as None (see rules.rule_for). transaction_currency only labels the
    unconverted broker amounts in reports.
    """

    jurisdiction: Literal["IE"] = "IE"
    exemption_amount: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None
    tax_year: Optional[int] = None
    round_dp: int = Field(2, ge=0, le=8)
    currency: str = "EUR"
    transaction_currency: str = "USD"

    @field_validator("exemption_amount")
    @classmethod
    def _non_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("exemption_amount must be >= 0")
        return v

    @field_validator("tax_rate")
    @classmethod
    def _fraction(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and not (Decimal("0") <= v <= Decimal("1")):
            raise ValueError("tax_rate must be a fraction between 0 and 1")
        return v

    @field_validator("currency", "transaction_currency")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()


# ---------- API response models ----------

class MatchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    quantity: Decimal
    acquired_date: dt.date
    disposal_date: dt.date
    cost_basis: Decimal
    proceeds: Decimal
    gain: Decimal
    acquired_fx_rate: Decimal
    disposal_fx_rate: Decimal
    native_cost_basis: Decimal
    native_proceeds: Decimal
    native_gain: Decimal

    @field_serializer(
        "quantity", "cost_basis", "proceeds", "gain", "acquired_fx_rate", "disposal_fx_rate",
        "native_cost_basis", "native_proceeds", "native_gain",
    )
    def _ser_dec(self, v: Decimal) -> str | None:
        return _dec_to_str(v)


class TaxSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_proceeds: Decimal
    total_cost: Decimal
    total_gains: Decimal
    total_losses: Decimal
    total_gain: Decimal
    exemption: Decimal
    exemption_applied: Decimal
    chargeable_gain: Decimal
    tax_rate: Decimal
    tax_due: Decimal

    @field_serializer(
        "total_proceeds", "total_cost", "total_gains", "total_losses", "total_gain",
        "exemption", "exemption_applied", "chargeable_gain", "tax_rate", "tax_due",
    )
    def _ser_dec(self, v: Decimal) -> str | None:
        return _dec_to_str(v)


class PeriodReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start: Optional[dt.date] = None
    end: Optional[dt.date] = None
    proceeds: Decimal
    gains: Decimal
    losses: Decimal
    net_gain: Decimal
    native_proceeds: Decimal
    native_gains: Decimal
    native_losses: Decimal
    native_net_gain: Decimal

    @field_serializer(
        "proceeds", "gains", "losses", "net_gain",
        "native_proceeds", "native_gains", "native_losses", "native_net_gain",
    )
    def _ser_dec(self, v: Decimal) -> str | None:
        return _dec_to_str(v)


class CSVPreviewResponse(BaseModel):
    """
    API response model for /upload/csv (preview only).
    """

    filename: str
    total_valid: int
    total_errors: int
    preview_first_5: List[Transaction]
    errors: List[Any]


class CalculateResponse(BaseModel):
    """
    API response model for /calculate and /history/{run_id}.
    """

    run_id: int
    tax_year: int
    jurisdiction: str
    currency: str
    matches: List[MatchOut]
    periods: List[PeriodReportOut]
    summary: TaxSummaryOut
    digests: dict[str, str] = Field(default_factory=dict)


class CalcRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    started_at: str
    finished_at: Optional[str] = None
    jurisdiction: str
    tax_year: int
    source_filename: Optional[str] = None
    total_gain: str
    tax_due: str
    manifest_hash: Optional[str] = None


class CalcRunList(BaseModel):
    items: list[CalcRunOut]
