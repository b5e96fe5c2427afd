"""Command line entry point: `cgtcalc path/to/transactions.csv`."""

from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .__about__ import __title__, __version__
from .calc_runner import run_calculation
from .csv_normalizer import load_transactions
from .errors import CgtError
from .fx_utils import FxRateTable, apply_rates
from .logging_config import setup_logging
from .report import format_report, write_detail_csv
from .settings import get_settings

LOGGER = logging.getLogger(__name__)

DEFAULT_DETAIL_CSV = "CGT_transaction_detail.csv"


def decimal_arg(value: str) -> Decimal:
    """argparse type for amounts: a finite decimal, else a usage error."""
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from None
    if not number.is_finite():
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    return number


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=__title__,
        description="Compute capital gains tax for one tax year using FIFO lot matching.",
    )
    parser.add_argument("transactions", type=Path, help="CSV of acquisitions and disposals, in chronological order")
    parser.add_argument(
        "--fx-rates",
        type=Path,
        default=None,
        help="CSV with date,rate columns (transaction currency per reporting currency)",
    )
    parser.add_argument(
        "--detail-csv",
        type=Path,
        default=Path(DEFAULT_DETAIL_CSV),
        help=f"where to write the per-match detail (default: {DEFAULT_DETAIL_CSV})",
    )
    parser.add_argument("--no-detail-csv", action="store_true", help="do not write the detail CSV")
    parser.add_argument("--pdf", type=Path, default=None, help="also write a PDF summary to this path")
    parser.add_argument("--exemption", type=decimal_arg, default=None, help="annual exemption amount")
    parser.add_argument("--rate", type=decimal_arg, default=None, help="flat tax rate as a fraction, e.g. 0.33")
    parser.add_argument("--tax-year", type=int, default=None, help="tax year (default: year of the first disposal)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging and tracebacks")
    parser.add_argument("--version", action="version", version=f"{__title__} {__version__}")
    return parser


def calculate_cgt(args: argparse.Namespace) -> None:
    """Perform all the computations and write the outputs."""
    settings = get_settings()
    cfg = settings.default_config(exemption_amount=args.exemption, tax_rate=args.rate, tax_year=args.tax_year)

    transactions = load_transactions(args.transactions)
    if args.fx_rates is not None:
        transactions = apply_rates(transactions, FxRateTable.from_csv(args.fx_rates))

    result = run_calculation(transactions, cfg)

    if not args.no_detail_csv:
        path = write_detail_csv(result.matches, args.detail_csv)
        print(f"The transaction detail was written as CSV to file {path}")
    if args.pdf is not None:
        # ReportLab is only needed for this output
        from .report_pdf import build_summary_pdf

        args.pdf.write_bytes(build_summary_pdf(result))
        print(f"The PDF summary was written to file {args.pdf}")

    print(format_report(result), end="")


def main(argv: Optional[List[str]] = None) -> int:
    """Run main function."""
    args = create_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        if not args.verbose:
            setup_logging(get_settings().log_level)
        calculate_cgt(args)
    except (CgtError, ValidationError) as err:
        if args.verbose:
            LOGGER.exception("Exception:")
        else:
            # Print error without traceback
            LOGGER.error("%s", err)
        return 1
    except OSError as err:
        LOGGER.error("%s", err)
        return 1
    return 0


def init() -> None:
    """Entry point."""
    sys.exit(main())


if __name__ == "__main__":
    init()
