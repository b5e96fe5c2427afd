# csv_normalizer.py
"""
CSV parsing and normalization to our Transaction schema.

Responsibilities:
- Read CSV bytes safely.
- Normalize header names (case-insensitive, spaces -> underscores).
- Validate required columns are present.
- Convert empty strings to None for optional fields.
- Validate each row using Pydantic (Transaction) plus the engine's amount
  checks, returning (valid_rows, errors) so callers can preview and/or run.

Design choices:
- This module is "pure" (no DB calls). It converts raw bytes -> typed objects.
- Row order is preserved exactly; the FIFO engine relies on it.
"""

import csv
import logging
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Tuple

from pydantic import ValidationError

from .errors import InvalidTransactionError
from .fifo_engine import validate_transaction
from .schemas import Transaction

LOGGER = logging.getLogger(__name__)

# Expected CSV columns (case-insensitive):
# date,type,quantity,total_value|unit_value,fees,fx_rate,memo
REQUIRED_COLUMNS = {"date", "type", "quantity"}
VALUE_COLUMNS = {"total_value", "unit_value"}
OPTIONAL_COLUMNS = {"fees", "fx_rate", "memo"}

# Common broker header spellings mapped onto ours.
HEADER_ALIASES = {
    "record_type": "type",
    "kind": "type",
    "shares": "quantity",
    "qty": "quantity",
    "total_proceeds": "total_value",
    "total": "total_value",
    "amount": "total_value",
    "price": "unit_value",
    "unit_price": "unit_value",
    "fee": "fees",
    "commission": "fees",
}


def _normalize_headers(headers: List[str]) -> List[str]:
    """Lowercase, strip and underscore headers, then resolve aliases."""
    out = []
    for h in headers:
        key = (h or "").strip().lower().replace(" ", "_").replace("-", "_")
        out.append(HEADER_ALIASES.get(key, key))
    return out


def parse_csv(file_bytes: bytes, encoding: str = "utf-8") -> Tuple[List[Transaction], List[Dict[str, Any]]]:
    """
    Parse CSV bytes into a list of Transaction objects.
    Returns:
      valid_rows: list[Transaction]   (in file order)
      errors: list of {row_number, error, raw_row}
    """
    valid: List[Transaction] = []
    errors: List[Dict[str, Any]] = []

    # utf-8-sig drops the BOM spreadsheet tools like to prepend
    if encoding.lower().replace("-", "") == "utf8":
        encoding = "utf-8-sig"
    # decode up front so a wrong encoding is reported once, before any row is read
    try:
        text = file_bytes.decode(encoding)
    except UnicodeDecodeError as ude:
        errors.append({
            "row_number": 0,
            "error": f"File is not valid {encoding} text (bad byte at offset {ude.start})",
            "raw_row": None,
        })
        return valid, errors
    reader = csv.DictReader(StringIO(text, newline=""))

    if reader.fieldnames is None:
        errors.append({"row_number": 0, "error": "CSV has no header", "raw_row": None})
        return valid, errors

    headers = _normalize_headers(list(reader.fieldnames))
    header_map = {orig: norm for orig, norm in zip(reader.fieldnames, headers)}

    header_set = set(headers)
    missing = REQUIRED_COLUMNS - header_set
    if missing:
        errors.append({"row_number": 0, "error": f"Missing required columns: {sorted(missing)}", "raw_row": None})
        return valid, errors
    if not (VALUE_COLUMNS & header_set):
        errors.append(
            {"row_number": 0, "error": f"Missing a value column: one of {sorted(VALUE_COLUMNS)}", "raw_row": None}
        )
        return valid, errors

    known = REQUIRED_COLUMNS | VALUE_COLUMNS | OPTIONAL_COLUMNS
    for i, row in enumerate(reader, start=2):  # start=2 because row 1 is the header
        normalized: Dict[str, Any] = {}
        for orig_key, value in row.items():
            key = header_map.get(orig_key, orig_key)
            if key not in known:
                continue  # broker exports carry plenty of columns we don't use
            value = value.strip() if isinstance(value, str) else value
            normalized[key] = None if value == "" else value

        if all(v is None for v in normalized.values()):
            continue  # blank line

        # "type" is the CSV column; the schema calls it kind
        normalized["kind"] = normalized.pop("type", None)

        try:
            tx = Transaction(**normalized)
            validate_transaction(tx)
            valid.append(tx)
        except ValidationError as ve:
            errors.append({"row_number": i, "error": ve.errors(include_url=False, include_context=False), "raw_row": normalized})
        except InvalidTransactionError as ie:
            errors.append({"row_number": i, "error": str(ie), "raw_row": normalized})

    LOGGER.debug("Parsed %d valid rows, %d errors", len(valid), len(errors))
    return valid, errors


def load_transactions(path: str | Path, encoding: str = "utf-8") -> List[Transaction]:
    """
    Read a CSV file and return its transactions.
    Any invalid row makes the whole load fail: a tax figure built on a partial
    record is worse than none.
    """
    data = Path(path).read_bytes()
    valid, errors = parse_csv(data, encoding=encoding)
    if errors:
        shown = "; ".join(f"row {e['row_number']}: {e['error']}" for e in errors[:5])
        more = f" (and {len(errors) - 5} more)" if len(errors) > 5 else ""
        raise InvalidTransactionError(f"{path}: {len(errors)} invalid row(s): {shown}{more}")
    LOGGER.info("Loaded %d transactions from %s", len(valid), path)
    return valid
