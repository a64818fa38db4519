from __future__ import annotations

import dataclasses
from typing import Dict, List, Optional, Sequence, Tuple


@dataclasses.dataclass(frozen=True)
class AccountState:
    total_value: float = 0.0


@dataclasses.dataclass(frozen=True)
class FlowsDetail:
    """
    Itemized monthly flows as reported by the simulation engine.
    Totals are authoritative; the itemized fields are used only for attribution.
    """

    total_income: float = 0.0
    salary_income: float = 0.0
    bonus_income: float = 0.0
    rsu_income: float = 0.0
    social_security_income: float = 0.0
    pension_income: float = 0.0
    dividend_income: float = 0.0
    interest_income: float = 0.0
    total_expenses: float = 0.0
    housing_expenses: float = 0.0
    transportation_expenses: float = 0.0
    food_expenses: float = 0.0
    other_expenses: float = 0.0
    debt_payments_principal: float = 0.0
    debt_payments_interest: float = 0.0
    total_contributions: float = 0.0
    total_withdrawals: float = 0.0
    rmd_amount: float = 0.0
    tax_withheld: float = 0.0
    taxes_paid: float = 0.0
    roth_conversion_amount: float = 0.0
    investment_growth: float = 0.0
    auto_shortfall_cover: float = 0.0


@dataclasses.dataclass(frozen=True)
class MarketReturns:
    equity: float = 0.0  # SPY
    bond: float = 0.0  # BND
    inflation: Optional[float] = None
    intl: Optional[float] = None
    other: Optional[float] = None
    home: Optional[float] = None
    rent: Optional[float] = None
    individual_stock: Optional[float] = None


@dataclasses.dataclass(frozen=True)
class StrategyExecution:
    strategy_type: str
    amount: float = 0.0


@dataclasses.dataclass(frozen=True)
class MonthSnapshot:
    month_offset: int
    calendar_year: int
    calendar_month: int
    cash: float
    age: Optional[float] = None
    taxable: Optional[AccountState] = None
    tax_deferred: Optional[AccountState] = None
    roth: Optional[AccountState] = None
    hsa: Optional[AccountState] = None
    education: Optional[AccountState] = None
    flows: FlowsDetail = dataclasses.field(default_factory=FlowsDetail)
    market_returns: MarketReturns = dataclasses.field(default_factory=MarketReturns)
    strategy_executions: Tuple[StrategyExecution, ...] = ()
    event_ids: Tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class EventTraceEntry:
    event_id: str
    month_offset: int
    event_type: str
    event_name: str = ""
    cash_before: float = 0.0
    cash_after: float = 0.0
    taxable_before: float = 0.0
    taxable_after: float = 0.0
    tax_deferred_before: float = 0.0
    tax_deferred_after: float = 0.0
    roth_before: float = 0.0
    roth_after: float = 0.0

    @property
    def cash_delta(self) -> float:
        return self.cash_after - self.cash_before

    @property
    def invested_delta(self) -> float:
        before = self.taxable_before + self.tax_deferred_before + self.roth_before
        after = self.taxable_after + self.tax_deferred_after + self.roth_after
        return after - before


@dataclasses.dataclass(frozen=True)
class RealizedMonthVariables:
    """Per-month "show the math" linkage emitted by stochastic runs."""

    month_offset: int
    invested_base_for_return: float = 0.0
    asset_weights: Dict[str, float] = dataclasses.field(default_factory=dict)
    weighted_return: float = 0.0
    computed_growth_dollars: float = 0.0
    spy_volatility: Optional[float] = None
    bnd_volatility: Optional[float] = None
    intl_volatility: Optional[float] = None


@dataclasses.dataclass
class EnginePayload:
    snapshots: List[MonthSnapshot]
    event_trace: List[EventTraceEntry] = dataclasses.field(default_factory=list)
    realized_path_variables: List[RealizedMonthVariables] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class Assumptions:
    # Display only; never used in reconciliation math.
    stock_return_annual: float = 0.07
    bond_return_annual: float = 0.03
    inflation_annual: float = 0.03
    intl_stock_return_annual: float = 0.06
    home_appreciation_annual: float = 0.03


@dataclasses.dataclass(frozen=True)
class AccountBalances:
    cash: float = 0.0
    taxable: float = 0.0
    tax_deferred: float = 0.0
    roth: float = 0.0
    hsa: Optional[float] = None  # None = account not tracked
    education: Optional[float] = None

    @property
    def invested(self) -> float:
        return self.taxable + self.tax_deferred + self.roth + (self.hsa or 0.0) + (self.education or 0.0)


@dataclasses.dataclass(frozen=True)
class TraceOptions:
    scenario_id: str = "baseline"
    seed: int = 1234
    cash_floor: float = 0.0
    equity_allocation: float = 0.6
    initial_cash: Optional[float] = None
    initial_invested: Optional[float] = None
    initial_account_balances: Optional[AccountBalances] = None
    event_trace: Sequence[EventTraceEntry] = ()
    simulation_mode: str = "deterministic"  # "deterministic" or "stochastic"
    model_description: Optional[str] = None
    realized_path_variables: Sequence[RealizedMonthVariables] = ()
