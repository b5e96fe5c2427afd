from datetime import date
from decimal import Decimal

from cgtcalc.fifo_engine import Match, compute_fifo
from cgtcalc.tax_summary import compute_period_report, summarize

D = Decimal
EXEMPTION = D("1270")
RATE = D("0.33")


def _match(gain, day=date(2024, 6, 1)) -> Match:
    gain = D(str(gain))
    return Match(quantity=D(1), acquired_date=date(2024, 1, 1), disposal_date=day, cost_basis=D(100), proceeds=D(100) + gain)


def test_empty_match_list_is_all_zero():
    s = summarize([], EXEMPTION, RATE)
    assert s.total_gain == 0
    assert s.chargeable_gain == 0
    assert s.tax_due == 0
    assert s.exemption_applied == 0
    assert s.exemption == EXEMPTION


def test_scenario_below_exemption(scenario_txs):
    matches, _ = compute_fifo(scenario_txs[:3])
    s = summarize(matches, EXEMPTION, RATE)
    assert s.total_gain == D(1160)
    assert s.chargeable_gain == 0
    assert s.tax_due == 0
    assert s.exemption_applied == D(1160)


def test_scenario_continuation_still_below_exemption(scenario_txs):
    matches, _ = compute_fifo(scenario_txs)
    s = summarize(matches, EXEMPTION, RATE)
    assert s.total_gain == D(1250)
    assert s.tax_due == 0


def test_gain_above_exemption_is_taxed():
    s = summarize([_match(2270)], EXEMPTION, RATE)
    assert s.chargeable_gain == D(1000)
    assert s.tax_due == D(330)
    assert s.exemption_applied == EXEMPTION


def test_gain_exactly_at_exemption():
    s = summarize([_match(1270)], EXEMPTION, RATE)
    assert s.chargeable_gain == 0
    assert s.tax_due == 0


def test_net_loss_never_chargeable():
    s = summarize([_match(500), _match(-900)], EXEMPTION, RATE)
    assert s.total_gain == D(-400)
    assert s.total_gains == D(500)
    assert s.total_losses == D(900)
    assert s.chargeable_gain == 0
    assert s.exemption_applied == 0
    # also with no exemption at all
    assert summarize([_match(-1)], D(0), RATE).chargeable_gain == 0


def test_losses_offset_gains():
    s = summarize([_match(3000), _match(-730)], EXEMPTION, RATE)
    assert s.total_gain == D(2270)
    assert s.chargeable_gain == D(1000)


def test_summarize_is_pure():
    matches = [_match(1500), _match(-20), _match(4000)]
    assert summarize(matches, EXEMPTION, RATE) == summarize(matches, EXEMPTION, RATE)


def test_totals_include_proceeds_and_cost(scenario_txs):
    matches, _ = compute_fifo(scenario_txs)
    s = summarize(matches, EXEMPTION, RATE)
    assert s.total_proceeds == D(2850)
    assert s.total_cost == D(1600)


def test_period_report_filters_inclusive_range():
    matches = [
        _match(100, date(2024, 11, 30)),
        _match(-40, date(2024, 12, 1)),
        _match(60, date(2024, 12, 31)),
    ]
    jan_nov = compute_period_report(matches, date(2024, 1, 1), date(2024, 11, 30))
    dec = compute_period_report(matches, date(2024, 12, 1), date(2024, 12, 31))
    everything = compute_period_report(matches)

    assert jan_nov.gains == D(100) and jan_nov.losses == 0
    assert dec.gains == D(60) and dec.losses == D(40) and dec.net_gain == D(20)
    assert dec.proceeds == D(220)
    # unconverted matches: transaction-currency totals equal the reporting ones
    assert dec.native_proceeds == D(220) and dec.native_net_gain == D(20)
    assert everything.net_gain == D(120)


def test_period_report_native_totals_use_broker_amounts():
    m = Match(
        quantity=D(10),
        acquired_date=date(2024, 1, 2),
        disposal_date=date(2024, 6, 3),
        cost_basis=D(100),
        proceeds=D(90),
        acquired_fx_rate=D("1.1"),
        disposal_fx_rate=D("1.25"),
        native_cost_basis=D(110),
        native_proceeds=D("112.5"),
    )
    report = compute_period_report([m])
    # a loss in EUR can be a gain in USD when the rate moved
    assert report.losses == D(10) and report.gains == 0
    assert report.native_gains == D("2.5") and report.native_losses == 0
    assert report.native_proceeds == D("112.5")
