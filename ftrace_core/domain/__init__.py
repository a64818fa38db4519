from ftrace_core.domain.models import (  # noqa: F401
    AccountBalances,
    AccountState,
    Assumptions,
    EventTraceEntry,
    FlowsDetail,
    MarketReturns,
    MonthSnapshot,
    RealizedMonthVariables,
    StrategyExecution,
    TraceOptions,
)
from ftrace_core.domain.trace import (  # noqa: F401
    RECONCILE_TOLERANCE,
    TIME_CONVENTION,
    BreachStatus,
    FlowGroup,
    FlowItem,
    FlowSource,
    GrowthComponent,
    TraceData,
    TraceIntegrityError,
    TraceRow,
    TraceRunMeta,
    TraceSummary,
    Transfer,
    TransferReason,
    WorldVars,
)

__all__ = [
    "AccountBalances",
    "AccountState",
    "Assumptions",
    "EventTraceEntry",
    "FlowsDetail",
    "MarketReturns",
    "MonthSnapshot",
    "RealizedMonthVariables",
    "StrategyExecution",
    "TraceOptions",
    "RECONCILE_TOLERANCE",
    "TIME_CONVENTION",
    "BreachStatus",
    "FlowGroup",
    "FlowItem",
    "FlowSource",
    "GrowthComponent",
    "TraceData",
    "TraceIntegrityError",
    "TraceRow",
    "TraceRunMeta",
    "TraceSummary",
    "Transfer",
    "TransferReason",
    "WorldVars",
]
