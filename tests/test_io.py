import json
from pathlib import Path

import pytest

from ftrace_core.domain.models import AccountBalances
from ftrace_core.io.config import clamp_allocation, load_assumptions, load_trace_options, parse_trace_options
from ftrace_core.io.snapshots import load_payload, parse_event_trace, parse_market_returns

DATA = Path(__file__).parent / "data"


def test_load_payload_fixture():
    payload = load_payload(DATA / "payload.json")

    assert len(payload.snapshots) == 3
    first = payload.snapshots[0]
    assert (first.calendar_year, first.calendar_month) == (2025, 1)
    assert first.taxable.total_value == 51500
    assert first.tax_deferred is None
    assert first.flows.total_contributions == 1000
    assert first.market_returns.inflation == 0.002
    assert first.event_ids == ("salary", "rent", "contrib-taxable")

    last = payload.snapshots[-1]
    assert last.flows.auto_shortfall_cover == 500
    assert last.strategy_executions[0].strategy_type == "RMD"
    assert last.market_returns.inflation is None

    assert [e.event_id for e in payload.event_trace] == ["salary", "rent", "contrib-taxable"]
    assert payload.event_trace[2].taxable_after == 51000
    assert payload.event_trace[0].roth_before == 0.0
    assert payload.realized_path_variables[0].asset_weights == {"SPY": 0.6, "BND": 0.4}
    assert payload.realized_path_variables[0].spy_volatility == 0.045


def test_load_payload_requires_monthly_states(tmp_path: Path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"eventTrace": []}))
    with pytest.raises(ValueError, match="monthlyStates"):
        load_payload(path)


def test_load_payload_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_payload(tmp_path / "nope.json")


def test_event_trace_requires_identity_columns():
    with pytest.raises(ValueError, match="Missing columns"):
        parse_event_trace([{"eventId": "a", "cashBefore": 1}])


def test_event_trace_fills_missing_balances():
    entries = parse_event_trace([{"eventId": "a", "monthOffset": 2, "eventType": "INCOME", "cashAfter": 50}])

    assert entries[0].event_name == ""
    assert entries[0].cash_before == 0.0
    assert entries[0].cash_delta == 50


def test_market_returns_tolerate_nulls():
    returns = parse_market_returns({"SPY": None, "BND": 0.01, "Home": 0.002})

    assert returns.equity == 0.0
    assert returns.bond == 0.01
    assert returns.home == 0.002
    assert returns.intl is None


def test_load_trace_options_fixture():
    options = load_trace_options(DATA / "options.json")

    assert options.scenario_id == "fixture"
    assert options.seed == 7
    assert options.cash_floor == 12000
    assert options.initial_cash == 10000
    assert options.initial_account_balances == AccountBalances(cash=10000, taxable=50000)


def test_trace_options_defaults_and_clamping():
    options = parse_trace_options({"equity_allocation": 1.7})

    assert options.equity_allocation == 1.0
    assert options.scenario_id == "baseline"
    assert options.initial_cash is None
    assert options.initial_account_balances is None
    assert clamp_allocation(-0.2) == 0.0


def test_load_assumptions_fixture():
    assumptions = load_assumptions(DATA / "assumptions.json")

    assert assumptions.stock_return_annual == 0.07
    assert assumptions.inflation_annual == 0.025


def test_config_must_be_object(tmp_path: Path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_trace_options(path)
