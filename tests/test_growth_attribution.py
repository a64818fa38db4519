from ftrace_core.domain.models import AccountState, FlowsDetail, MarketReturns, MonthSnapshot, RealizedMonthVariables, TraceOptions
from ftrace_core.domain.trace import RECONCILE_TOLERANCE
from ftrace_core.services.growth import build_growth_components, build_world_vars
from ftrace_core.services.pipeline import build_trace_data


def test_full_equity_allocation_yields_single_equity_component():
    components = build_growth_components(100000, MarketReturns(equity=0.02), 1.0, 2000)

    assert len(components) == 1
    assert components[0].label == "Equity impact"
    assert abs(components[0].amount - 2000) <= RECONCILE_TOLERANCE
    assert components[0].formula == "$100,000 × +2.00%"


def test_equity_and_bond_split_by_allocation():
    components = build_growth_components(400000, MarketReturns(equity=-0.041, bond=0.005), 0.6, -9040)
    by_label = {c.label: c for c in components}

    assert abs(by_label["Equity impact"].amount - (-9840)) < 1e-6
    assert abs(by_label["Bond impact"].amount - 800) < 1e-6
    assert by_label["Equity impact"].formula == "$240,000 × -4.10%"
    assert by_label["Bond impact"].formula == "$160,000 × +0.50%"
    assert "Other/Residual" not in by_label


def test_residual_component_foots_to_engine_value():
    components = build_growth_components(50000, MarketReturns(equity=0.01), 0.6, 500)

    assert [c.label for c in components] == ["Equity impact", "Other/Residual"]
    assert components[1].formula == "Engine value - (equity + bond)"
    assert abs(sum(c.amount for c in components) - 500) <= RECONCILE_TOLERANCE


def test_zero_rates_still_emit_residual_only():
    components = build_growth_components(10000, MarketReturns(), 0.6, 42)

    assert [c.label for c in components] == ["Other/Residual"]
    assert build_growth_components(10000, MarketReturns(), 0.6, 0) == []


def test_nonzero_rate_on_empty_balance_is_still_shown():
    components = build_growth_components(0, MarketReturns(equity=0.03, bond=-0.01), 0.6, 0)
    assert [c.label for c in components] == ["Equity impact", "Bond impact"]
    assert all(c.amount == 0 for c in components)


def test_growth_base_is_post_transfer_balance():
    snapshot = MonthSnapshot(
        month_offset=0,
        calendar_year=2025,
        calendar_month=1,
        cash=0,
        taxable=AccountState(102000),
        flows=FlowsDetail(total_contributions=0, total_withdrawals=0, investment_growth=2000),
        market_returns=MarketReturns(equity=0.02),
    )
    trace = build_trace_data(
        [snapshot], options=TraceOptions(initial_cash=0, initial_invested=100000, equity_allocation=1.0)
    )
    components = trace.growth_components_by_month["2025-01"]

    assert [c.label for c in components] == ["Equity impact"]
    assert abs(components[0].amount - 2000) <= RECONCILE_TOLERANCE
    assert abs(trace.rows[0].inv_delta) <= RECONCILE_TOLERANCE


def test_world_vars_copy_tracked_returns_only():
    world = build_world_vars(MarketReturns(equity=0.01, bond=0.002, inflation=0.003, home=0.004))

    assert world.equity_return == 0.01
    assert world.inflation == 0.003
    assert world.home_return == 0.004
    assert world.intl_return is None
    assert world.series_ids == {"equity": "SPY", "bond": "BND"}
    assert world.invested_base_for_return is None
    assert world.volatility_state is None


def test_world_vars_include_show_the_math_linkage():
    realized = RealizedMonthVariables(
        month_offset=3,
        invested_base_for_return=200000,
        asset_weights={"SPY": 0.7, "BND": 0.3},
        weighted_return=0.012,
        computed_growth_dollars=2400,
        bnd_volatility=0.01,
    )
    world = build_world_vars(MarketReturns(equity=0.015, bond=0.005), realized)

    assert world.invested_base_for_return == 200000
    assert world.asset_weights == {"SPY": 0.7, "BND": 0.3}
    assert world.computed_growth_dollars == 2400
    assert world.volatility_state == {"spy": 0.0, "bnd": 0.01, "intl": None}
