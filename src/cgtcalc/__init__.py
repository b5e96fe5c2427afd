"""FIFO capital-gains tax calculator for broker share transactions."""

from .__about__ import __title__, __version__
from .errors import (
    CgtError,
    ConfigurationError,
    FxRateMissingError,
    InsufficientLotsError,
    InvalidTransactionError,
    TaxYearMismatchError,
)
from .fifo_engine import FifoEngine, Lot, LotQueue, Match, compute_fifo
from .schemas import CalcConfig, Transaction, TxKind
from .tax_summary import PeriodReport, TaxSummary, compute_period_report, summarize

__all__ = [
    "__title__",
    "__version__",
    "CalcConfig",
    "CgtError",
    "ConfigurationError",
    "FifoEngine",
    "FxRateMissingError",
    "InsufficientLotsError",
    "InvalidTransactionError",
    "Lot",
    "LotQueue",
    "Match",
    "PeriodReport",
    "TaxSummary",
    "TaxYearMismatchError",
    "Transaction",
    "TxKind",
    "compute_fifo",
    "compute_period_report",
    "summarize",
]
