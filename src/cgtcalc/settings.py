# settings.py
"""
Process configuration from environment variables (optionally a .env file in
the working directory or project root).

  CGTCALC_DB_URL      SQLAlchemy URL for run history (default: local SQLite file)
  CGTCALC_EXEMPTION   override the jurisdiction's annual exemption
  CGTCALC_TAX_RATE    override the jurisdiction's flat rate (fraction, e.g. 0.33)
  CGTCALC_LOG_LEVEL   logging level name (default: WARNING)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .schemas import CalcConfig

PROJECT_ROOT = Path(__file__).resolve().parents[2]


@dataclass(frozen=True)
class Settings:
    db_url: str
    exemption_amount: Optional[Decimal]
    tax_rate: Optional[Decimal]
    log_level: str

    def default_config(self, **overrides) -> CalcConfig:
        """CalcConfig seeded from the environment; explicit overrides win when not None."""
        values = {"exemption_amount": self.exemption_amount, "tax_rate": self.tax_rate}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return CalcConfig(**values)


def _env_decimal(name: str) -> Optional[Decimal]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # cwd .env first, then the project root; existing env vars are never overridden
    load_dotenv()
    load_dotenv(PROJECT_ROOT / ".env")
    return Settings(
        db_url=os.getenv("CGTCALC_DB_URL", "sqlite:///./cgtcalc.db"),
        exemption_amount=_env_decimal("CGTCALC_EXEMPTION"),
        tax_rate=_env_decimal("CGTCALC_TAX_RATE"),
        log_level=os.getenv("CGTCALC_LOG_LEVEL", "WARNING").upper(),
    )
