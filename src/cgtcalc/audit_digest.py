# audit_digest.py
from __future__ import annotations
import json, hashlib
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from .calc_runner import CalcResult

def _dec_to_str(x: Any) -> str:
    if isinstance(x, Decimal):
        return format(x, 'f').rstrip('0').rstrip('.') if '.' in format(x, 'f') else format(x, 'f')
    return str(x)

def _json_c14n(obj: Any) -> str:
    """
    Canonical JSON dump:
      - sort keys
      - no spaces (compact separators)
      - decimals rendered as plain strings
    """
    def normalize(o: Any):
        if isinstance(o, dict):
            return {k: normalize(o[k]) for k in sorted(o.keys())}
        elif isinstance(o, (list, tuple)):
            return [normalize(v) for v in o]
        elif isinstance(o, Decimal):
            return _dec_to_str(o)
        else:
            return o
    norm = normalize(obj)
    return json.dumps(norm, sort_keys=True, separators=(",", ":"))

def _sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()

def build_run_manifest(result: "CalcResult") -> Dict[str, Any]:
    """
    Build a canonical manifest that captures:
      - the run configuration (jurisdiction, exemption, rate, tax year)
      - INPUT SET: the ordered transactions the engine consumed
      - OUTPUT SET: every match plus the tax summary
    Everything is rendered as JSON-safe strings so the manifest can be stored
    and re-hashed later.
    """
    s = result.summary
    return {
        "run": {
            "jurisdiction": result.cfg.jurisdiction,
            "tax_year": result.tax_year,
            "currency": result.cfg.currency,
            "exemption": _dec_to_str(s.exemption),
            "tax_rate": _dec_to_str(s.tax_rate),
            "lot_method": "FIFO",
        },
        "inputs": [
            {
                "date": tx.date.isoformat(),
                "kind": tx.kind.value,
                "quantity": _dec_to_str(tx.quantity),
                "total_value": _dec_to_str(tx.total_value),
                "fees": _dec_to_str(tx.fees),
                "fx_rate": _dec_to_str(tx.fx_rate),
            }
            for tx in result.transactions
        ],
        "outputs": {
            "matches": [
                {
                    "quantity": _dec_to_str(m.quantity),
                    "acquired_date": m.acquired_date.isoformat(),
                    "disposal_date": m.disposal_date.isoformat(),
                    "cost_basis": _dec_to_str(m.cost_basis),
                    "proceeds": _dec_to_str(m.proceeds),
                    "gain": _dec_to_str(m.gain),
                    "acquired_fx_rate": _dec_to_str(m.acquired_fx_rate),
                    "disposal_fx_rate": _dec_to_str(m.disposal_fx_rate),
                    "native_cost_basis": _dec_to_str(m.native_cost_basis),
                    "native_proceeds": _dec_to_str(m.native_proceeds),
                }
                for m in result.matches
            ],
            "summary": {
                "total_gain": _dec_to_str(s.total_gain),
                "chargeable_gain": _dec_to_str(s.chargeable_gain),
                "tax_due": _dec_to_str(s.tax_due),
            },
        },
    }

def compute_digests(manifest: Dict[str, Any]) -> Dict[str, str]:
    """
    Compute:
      - input_hash: hash over the run config and the input transactions
      - output_hash: hash over matches + summary
      - manifest_hash: hash over the full manifest
    """
    inputs_part = {
        "run": manifest["run"],
        "inputs": manifest["inputs"],
    }
    outputs_part = manifest["outputs"]

    return {
        "input_hash": _sha256_hex(_json_c14n(inputs_part)),
        "output_hash": _sha256_hex(_json_c14n(outputs_part)),
        "manifest_hash": _sha256_hex(_json_c14n(manifest)),
    }
