from datetime import date
from decimal import Decimal

import pytest

from cgtcalc.errors import ConfigurationError
from cgtcalc.rules import IeRule, RunContext, rule_for
from cgtcalc.schemas import CalcConfig


def test_ie_defaults():
    rule = IeRule()
    ctx = RunContext(cfg=CalcConfig(jurisdiction="IE"), tax_year=2024)
    assert rule.exemption_for(ctx) == Decimal("1270")
    assert rule.rate_for(ctx) == Decimal("0.33")


def test_ie_config_overrides():
    rule = IeRule()
    cfg = CalcConfig(exemption_amount=Decimal("0"), tax_rate=Decimal("0.2"))
    ctx = RunContext(cfg=cfg, tax_year=2024)
    assert rule.exemption_for(ctx) == Decimal("0")
    assert rule.rate_for(ctx) == Decimal("0.2")


def test_ie_payment_periods_cover_the_year():
    periods = IeRule().payment_periods(2023)
    assert periods == [
        (date(2023, 1, 1), date(2023, 11, 30)),
        (date(2023, 12, 1), date(2023, 12, 31)),
    ]


def test_rule_lookup():
    assert isinstance(rule_for("ie"), IeRule)
    with pytest.raises(ConfigurationError):
        rule_for("HR")
