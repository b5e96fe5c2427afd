# errors.py
"""
Error taxonomy for the calculator.

Every error raised by the core derives from CgtError, so the CLI and the API
only need one except-clause to turn a failed run into an exit code / HTTP 422.
All of them are fatal for the run: no partial tax summary is produced.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal


class CgtError(Exception):
    """Base class for all calculator errors."""


class InvalidTransactionError(CgtError):
    """A transaction failed validation (quantity, value, fees or fx rate)."""


class InsufficientLotsError(CgtError):
    """
    A disposal asks for more shares than remain unmatched.

    Usually means the input is out of chronological order or an acquisition
    record is missing.
    """

    def __init__(self, disposal_date: date, requested: Decimal, available: Decimal) -> None:
        self.disposal_date = disposal_date
        self.requested = requested
        self.available = available
        super().__init__(
            f"Disposal of {requested} shares on {disposal_date.isoformat()} exceeds the "
            f"{available} shares left in unmatched lots. Check that the input is in "
            f"chronological order and that no acquisition is missing."
        )


class TaxYearMismatchError(CgtError):
    """Disposals from more than one tax year were fed into a single run."""


class FxRateMissingError(CgtError):
    """No exchange rate is available on or before the requested date."""


class ConfigurationError(CgtError):
    """Invalid or unsupported configuration (jurisdiction, rate, exemption)."""
