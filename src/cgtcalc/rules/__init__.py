from __future__ import annotations
from cgtcalc.errors import ConfigurationError
from .base import Period, RunContext, TaxRule
from .ie import IeRule

_RULES = {"IE": IeRule}


def rule_for(code: str) -> TaxRule:
    try:
        return _RULES[code.strip().upper()]()
    except KeyError:
        raise ConfigurationError(
            f"unsupported jurisdiction {code!r}; available: {sorted(_RULES)}"
        ) from None


__all__ = ["IeRule", "Period", "RunContext", "TaxRule", "rule_for"]
