from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ftrace_core.domain.models import AccountBalances, Assumptions, EventTraceEntry

RECONCILE_TOLERANCE = 0.01
NEGLIGIBLE_AMOUNT = 0.001
DEFAULT_CASH_FLOOR = 0.0
DEFAULT_EQUITY_ALLOCATION = 0.6
TIME_CONVENTION = "OperatingFlow->Transfers->MarketReturnImpact(EOM)"
ROUNDING_POLICY = "StoreCents_DisplayRounded"


class TraceIntegrityError(ValueError):
    """Raised when a TraceData container is inconsistent with its own row list."""


class BreachStatus(str, Enum):
    NO = "No"
    FLOOR = "Floor"
    NEGATIVE = "Negative"


class FlowGroup(str, Enum):
    INCOME = "Income"
    SPENDING = "Spending"
    DEBT = "Debt"
    ONE_TIME = "OneTime"
    OTHER = "Other"


class FlowSource(str, Enum):
    EVENT = "Event"
    AGGREGATE = "Aggregate"


class TransferReason(str, Enum):
    SCHEDULED_CONTRIBUTION = "Scheduled contribution"
    PLANNED_SALE = "Planned sale"
    AUTO_RESTORE_FLOOR = "Auto-restore floor (derived)"
    REBALANCING = "Rebalancing"
    ROTH_CONVERSION = "Roth conversion"
    RMD_WITHDRAWAL = "RMD withdrawal"
    NONE = "None"


@dataclasses.dataclass(frozen=True)
class FlowItem:
    id: str  # {month}_{group}_{index}
    group: FlowGroup
    label: str
    amount: float
    source: FlowSource
    event_id: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class Transfer:
    """Negative amount = Cash -> Invested, positive = Invested -> Cash."""

    id: str  # {month}_transfer_{index}
    amount: float
    reason: TransferReason
    source_account: Optional[str] = None
    target_account: Optional[str] = None
    event_id: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class GrowthComponent:
    label: str
    amount: float
    formula: str


@dataclasses.dataclass(frozen=True)
class WorldVars:
    equity_return: float
    bond_return: float
    inflation: Optional[float] = None
    intl_return: Optional[float] = None
    other_return: Optional[float] = None
    home_return: Optional[float] = None
    rental_return: Optional[float] = None
    individual_stock_return: Optional[float] = None
    series_ids: Dict[str, str] = dataclasses.field(default_factory=dict)
    volatility_state: Optional[Dict[str, Optional[float]]] = None
    invested_base_for_return: Optional[float] = None
    asset_weights: Optional[Dict[str, float]] = None
    weighted_return: Optional[float] = None
    computed_growth_dollars: Optional[float] = None


@dataclasses.dataclass(frozen=True)
class TraceRow:
    month: str  # YYYY-MM
    month_index: int

    cash_start: float
    operating_flow: float
    transfer_cash: float
    cash_end: float
    cash_floor: float
    breach: BreachStatus

    inv_start: float
    market_return_impact: float
    inv_end: float

    net_worth_end: float
    cash_delta: float
    inv_delta: float
    nw_delta: float
    reconcile_delta: float

    event_ids: Tuple[str, ...] = ()

    @property
    def is_reconciled(self) -> bool:
        return self.reconcile_delta <= RECONCILE_TOLERANCE


@dataclasses.dataclass(frozen=True)
class TraceSummary:
    total_months: int = 0
    reconciled_months: int = 0
    first_breach_month: Optional[str] = None
    first_negative_cash_month: Optional[str] = None
    first_mismatch_month: Optional[str] = None
    worst_drawdown_month: Optional[str] = None
    largest_transfer_month: Optional[str] = None
    largest_negative_return_month: Optional[str] = None

    @property
    def all_reconciled(self) -> bool:
        return self.reconciled_months == self.total_months

    def month_pointers(self) -> Dict[str, Optional[str]]:
        return {
            "first_breach_month": self.first_breach_month,
            "first_negative_cash_month": self.first_negative_cash_month,
            "first_mismatch_month": self.first_mismatch_month,
            "worst_drawdown_month": self.worst_drawdown_month,
            "largest_transfer_month": self.largest_transfer_month,
            "largest_negative_return_month": self.largest_negative_return_month,
        }


@dataclasses.dataclass(frozen=True)
class TraceRunMeta:
    scenario_id: str
    seed: int
    equity_allocation: float
    cash_floor: float
    path_index: int = 0
    time_convention: str = TIME_CONVENTION
    reconcile_tolerance: float = RECONCILE_TOLERANCE
    rounding_policy: str = ROUNDING_POLICY
    simulation_mode: str = "deterministic"
    model_description: Optional[str] = None


@dataclasses.dataclass
class TraceData:
    """
    Top-level trace container.

    Rows carry only numeric summaries and event ids; per-month detail lives in the
    dicts below, keyed by YYYY-MM in chronological insertion order.
    """

    meta: TraceRunMeta
    rows: List[TraceRow] = dataclasses.field(default_factory=list)
    flow_items_by_month: Dict[str, List[FlowItem]] = dataclasses.field(default_factory=dict)
    transfers_by_month: Dict[str, List[Transfer]] = dataclasses.field(default_factory=dict)
    growth_components_by_month: Dict[str, List[GrowthComponent]] = dataclasses.field(default_factory=dict)
    world_vars_by_month: Dict[str, WorldVars] = dataclasses.field(default_factory=dict)
    event_lookup: Dict[str, EventTraceEntry] = dataclasses.field(default_factory=dict)
    months_by_offset: Dict[int, str] = dataclasses.field(default_factory=dict)
    account_starts_by_month: Dict[str, AccountBalances] = dataclasses.field(default_factory=dict)
    account_ends_by_month: Dict[str, AccountBalances] = dataclasses.field(default_factory=dict)
    summary: TraceSummary = dataclasses.field(default_factory=TraceSummary)
    assumptions: Assumptions = dataclasses.field(default_factory=Assumptions)

    def row_for(self, month: str) -> Optional[TraceRow]:
        for row in self.rows:
            if row.month == month:
                return row
        return None

    def validate(self) -> None:
        """
        Check that every month referenced by the detail dicts, the event lookup and the
        summary exists in the row list, and that rows are uniquely keyed and indexed
        in order.
        """
        months = set()
        for position, row in enumerate(self.rows):
            if row.month in months:
                raise TraceIntegrityError(f"Duplicate month in rows: {row.month}")
            if row.month_index != position:
                raise TraceIntegrityError(
                    f"Row {row.month} has month_index {row.month_index}, expected {position}"
                )
            months.add(row.month)

        details = {
            "flow_items_by_month": self.flow_items_by_month,
            "transfers_by_month": self.transfers_by_month,
            "growth_components_by_month": self.growth_components_by_month,
            "world_vars_by_month": self.world_vars_by_month,
            "account_starts_by_month": self.account_starts_by_month,
            "account_ends_by_month": self.account_ends_by_month,
        }
        for name, by_month in details.items():
            unknown = [m for m in by_month if m not in months]
            if unknown:
                raise TraceIntegrityError(f"{name} references months absent from rows: {unknown}")

        if self.summary.total_months != len(self.rows):
            raise TraceIntegrityError(
                f"Summary reports {self.summary.total_months} months but trace has {len(self.rows)} rows"
            )
        for offset, month in self.months_by_offset.items():
            if month not in months:
                raise TraceIntegrityError(f"Month offset {offset} maps to {month}, which is absent from rows")
        for event_id, entry in self.event_lookup.items():
            if entry.month_offset not in self.months_by_offset:
                raise TraceIntegrityError(
                    f"Event {event_id} references month offset {entry.month_offset}, which has no row"
                )

        for name, month in self.summary.month_pointers().items():
            if month is not None and month not in months:
                raise TraceIntegrityError(f"summary.{name} points at unknown month {month}")
